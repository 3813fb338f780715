"""
Status reporting - classifies repository paths into six categories.

Classification compares three snapshots of object ids, keyed by path:

    HEAD tree  vs index       -> added / changed / removed   (staged)
    index      vs working tree -> missing / modified         (unstaged)
    working tree only          -> untracked

A path can be both staged and further modified, so ``changed`` and
``modified`` are independent; within a category a path appears at most once.
Paths left conflicted by a merge are reported as added, changed, missing and
modified regardless of the plain comparison, mirroring an index that holds
several conflict stages and no resolved entry.

Reports are recomputed on every call; the working tree can change between
requests and nothing is cached.
"""
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from repogate.services.engine import GitEngine, RepositoryHandle

CATEGORIES = ("added", "changed", "missing", "modified", "removed", "untracked")


@dataclass(frozen=True)
class PathEntry:
    path: str
    object_id: str | None = None

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1]


@dataclass
class WorkingTreeState:
    """Object ids (raw hex bytes) per path for HEAD, the index and the working tree."""
    head: dict[str, bytes] = field(default_factory=dict)
    index: dict[str, bytes] = field(default_factory=dict)
    worktree: dict[str, bytes] = field(default_factory=dict)
    conflicts: set[str] = field(default_factory=set)


@dataclass
class StatusReport:
    added: list[PathEntry] = field(default_factory=list)
    changed: list[PathEntry] = field(default_factory=list)
    missing: list[PathEntry] = field(default_factory=list)
    modified: list[PathEntry] = field(default_factory=list)
    removed: list[PathEntry] = field(default_factory=list)
    untracked: list[PathEntry] = field(default_factory=list)

    def is_clean(self) -> bool:
        return not any(getattr(self, category) for category in CATEGORIES)

    def paths(self, category: str) -> list[str]:
        return [entry.path for entry in getattr(self, category)]

    def dirty_paths(self) -> set[str]:
        """Every path that appears in any category."""
        return {entry.path for category in CATEGORIES for entry in getattr(self, category)}


def _hex(sha: bytes | None) -> str | None:
    return sha.decode("ascii") if sha is not None else None


def classify(state: WorkingTreeState) -> StatusReport:
    """Build a StatusReport from a snapshot, in lexicographic path order."""
    report = StatusReport()
    all_paths = set(state.head) | set(state.index) | set(state.worktree) | state.conflicts
    for path in sorted(all_paths):
        head = state.head.get(path)
        staged = state.index.get(path)
        disk = state.worktree.get(path)

        if path in state.conflicts:
            for category in ("added", "changed", "missing", "modified"):
                getattr(report, category).append(PathEntry(path, _hex(staged or head)))
            continue

        if staged is not None and head is None:
            report.added.append(PathEntry(path, _hex(staged)))
        elif staged is not None and staged != head:
            report.changed.append(PathEntry(path, _hex(staged)))
        elif staged is None and head is not None:
            report.removed.append(PathEntry(path, _hex(head)))

        if staged is not None and disk is None:
            report.missing.append(PathEntry(path, _hex(staged)))
        elif staged is not None and disk != staged:
            report.modified.append(PathEntry(path, _hex(disk)))
        elif staged is None and disk is not None:
            report.untracked.append(PathEntry(path))
    return report


def compute_status(engine: "GitEngine", handle: "RepositoryHandle") -> StatusReport:
    """Fresh status for one repository."""
    return classify(engine.snapshot(handle))
