"""
Conflict rendering for merges that cannot auto-resolve.

A conflicted file's working-tree body is a single marker block:

    <<<<<<< HEAD
    ...our content...
    =======
    ...their content...
    >>>>>>> <their commit id>

The engine hands back one combined conflict per file, so there is exactly one
block per file rather than one per hunk.
"""
import logging

logger = logging.getLogger(__name__)

OURS_MARKER = b"<<<<<<<"
SEPARATOR_MARKER = b"======="
THEIRS_MARKER = b">>>>>>>"


def _as_bytes(content: bytes | str | None) -> bytes:
    if content is None:
        return b""
    if isinstance(content, str):
        return content.encode("utf-8")
    return content


def _terminated(content: bytes) -> bytes:
    if content and not content.endswith(b"\n"):
        return content + b"\n"
    return content


def render_conflict(
    path: str,
    ours: bytes | str | None,
    theirs: bytes | str | None,
    theirs_label: str,
    ours_label: str = "HEAD",
) -> bytes:
    """
    Render the conflicted body for ``path``.

    A side that deleted the file (``None``) contributes no lines. Content
    without a trailing newline gets one so each marker starts its own line.
    """
    logger.debug(f"Rendering conflict markers for {path} (theirs={theirs_label[:8]})")
    return b"".join([
        OURS_MARKER + b" " + ours_label.encode("utf-8") + b"\n",
        _terminated(_as_bytes(ours)),
        SEPARATOR_MARKER + b"\n",
        _terminated(_as_bytes(theirs)),
        THEIRS_MARKER + b" " + theirs_label.encode("utf-8") + b"\n",
    ])
