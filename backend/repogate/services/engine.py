"""
Repository engine adapter - drives dulwich working-tree repositories.

The gateway never implements version control itself: object storage, refs and
transport all belong to dulwich. This module performs the individual
operations (stage, commit, merge, clone, fetch, push, listings) against one
repository and translates dulwich failures into gateway errors.

Callers are responsible for serialization; see ``RepositoryGateway``.
"""

import logging
import os
import socket
import stat
import time
from dataclasses import dataclass, field
from enum import Enum
from io import BytesIO
from pathlib import Path

from dulwich import porcelain
from dulwich.client import HTTPUnauthorized, get_transport_and_path
from dulwich.errors import GitProtocolError, HangupException, NotGitRepository, SendPackError
from dulwich.ignore import IgnoreFilterManager
from dulwich.index import cleanup_mode, commit_tree, index_entry_from_stat
from dulwich.object_store import iter_tree_contents
from dulwich.objects import Blob, Commit, Tag
from dulwich.protocol import ZERO_SHA
from dulwich.repo import Repo as DulwichRepo
from dulwich.walk import Walker

from repogate.errors import (
    AUTHENTICATION_FAILURE,
    DIRTY_WORKTREE,
    ENGINE_FAILURE,
    MERGE_IN_PROGRESS,
    NETWORK_FAILURE,
    NON_FAST_FORWARD,
    PUSH_REJECTED,
    TARGET_EXISTS,
    UNRESOLVED_CONFLICTS,
    EngineFailure,
    GatewayError,
    MalformedError,
    NotFoundError,
    RejectedError,
)
from repogate.services.conflict import render_conflict
from repogate.services.status import WorkingTreeState, classify

logger = logging.getLogger(__name__)

MERGE_HEAD_FILE = "MERGE_HEAD"
MERGE_CONFLICTS_FILE = "MERGE_CONFLICTS"
CONTROL_DIR = ".git"

# Failures reaching or talking to the remote; other OSErrors are local (disk, permissions)
TRANSPORT_ERRORS = (
    HangupException,
    GitProtocolError,
    NotGitRepository,
    ConnectionError,
    TimeoutError,
    socket.gaierror,
)

# path -> (mode, sha); None marks a deletion
TreeEntries = dict[str, tuple[int, bytes]]


@dataclass(frozen=True)
class RepositoryHandle:
    """One linked working-tree repository."""
    project_id: str
    path: Path

    @property
    def key(self) -> str:
        """Serialization key - the resolved repository root."""
        return str(Path(self.path).resolve())


class MergeStatus(str, Enum):
    """Tag of a merge outcome."""
    ALREADY_UP_TO_DATE = "already_up_to_date"
    FAST_FORWARD = "fast_forward"
    MERGED = "merged"
    CONFLICTED = "conflicted"


@dataclass
class MergeOutcome:
    status: MergeStatus
    head: str | None = None
    conflicts: list[str] = field(default_factory=list)


@dataclass
class RemoteInfo:
    name: str
    url: str


@dataclass
class RemoteBranchInfo:
    remote: str
    branch: str
    ref: str  # e.g. refs/remotes/origin/master
    commit: str


def _hex(sha: bytes) -> str:
    return sha.decode("ascii")


class GitEngine:
    """Dulwich-backed implementation of the repository engine contract."""

    def __init__(self, committer: str = "RepoGate <repogate@localhost>"):
        self.committer = committer

    # -------------------------------------------------------------------------
    # Opening repositories
    # -------------------------------------------------------------------------

    def open(self, path: Path) -> DulwichRepo:
        """Open the working-tree repository at ``path``."""
        try:
            repo = DulwichRepo(str(path))
        except (NotGitRepository, FileNotFoundError, NotADirectoryError):
            raise NotFoundError(f"No repository at {path}")
        if repo.bare:
            repo.close()
            raise MalformedError(f"Repository at {path} is bare and has no working tree")
        return repo

    def is_repository(self, path: Path) -> bool:
        try:
            self.open(path).close()
        except (NotFoundError, MalformedError):
            return False
        return True

    # -------------------------------------------------------------------------
    # Reading state
    # -------------------------------------------------------------------------

    def _head_sha(self, repo: DulwichRepo) -> bytes | None:
        try:
            return repo.refs[b"HEAD"]
        except KeyError:
            return None

    def current_branch(self, repo: DulwichRepo) -> str | None:
        """Name of the branch HEAD points at, or None when detached."""
        head_ref = repo.refs.read_ref(b"HEAD")
        if head_ref and head_ref.startswith(b"ref: refs/heads/"):
            return head_ref[16:].decode("utf-8")
        return None

    def head(self, handle: RepositoryHandle) -> tuple[str | None, str | None]:
        """(current branch, HEAD commit id); either may be None."""
        with self.open(handle.path) as repo:
            sha = self._head_sha(repo)
            return self.current_branch(repo), _hex(sha) if sha is not None else None

    def _tree_entries(self, repo: DulwichRepo, commit_sha: bytes | None) -> TreeEntries:
        if commit_sha is None:
            return {}
        tree_id = repo[commit_sha].tree
        return {
            entry.path.decode("utf-8"): (entry.mode, entry.sha)
            for entry in iter_tree_contents(repo.object_store, tree_id)
        }

    def _index_entries(self, index) -> TreeEntries:
        entries = {}
        for path, entry in index.items():
            sha = getattr(entry, "sha", None)
            if sha is None:
                # Conflict stages written by another client; not part of stage 0
                continue
            entries[path.decode("utf-8")] = (entry.mode, sha)
        return entries

    def _worktree_files(self, repo: DulwichRepo) -> list[str]:
        root = repo.path
        files = []
        for dirpath, dirnames, filenames in os.walk(root):
            if dirpath == root and CONTROL_DIR in dirnames:
                dirnames.remove(CONTROL_DIR)
            dirnames.sort()
            rel_dir = os.path.relpath(dirpath, root)
            # Symlinks to directories are listed as dirs but tracked as blobs
            links = [d for d in dirnames if os.path.islink(os.path.join(dirpath, d))]
            for name in filenames + links:
                rel = name if rel_dir == "." else f"{rel_dir}/{name}"
                files.append(rel.replace(os.sep, "/"))
        return sorted(files)

    def _worktree_blob_id(self, repo: DulwichRepo, rel_path: str) -> bytes | None:
        full = os.path.join(repo.path, rel_path)
        try:
            st = os.lstat(full)
        except FileNotFoundError:
            return None
        if stat.S_ISLNK(st.st_mode):
            data = os.fsencode(os.readlink(full))
        else:
            with open(full, "rb") as f:
                data = f.read()
        return Blob.from_string(data).id

    def _state(self, repo: DulwichRepo) -> WorkingTreeState:
        head = self._tree_entries(repo, self._head_sha(repo))
        index = self._index_entries(repo.open_index())
        ignore = IgnoreFilterManager.from_repo(repo)
        worktree = {}
        for rel in self._worktree_files(repo):
            if rel not in index and ignore.is_ignored(rel):
                continue
            blob_id = self._worktree_blob_id(repo, rel)
            if blob_id is not None:
                worktree[rel] = blob_id
        return WorkingTreeState(
            head={p: sha for p, (_, sha) in head.items()},
            index={p: sha for p, (_, sha) in index.items()},
            worktree=worktree,
            conflicts=set(self._read_conflicts(repo)),
        )

    def snapshot(self, handle: RepositoryHandle) -> WorkingTreeState:
        """Capture HEAD, index and working-tree object ids for one repository."""
        with self.open(handle.path) as repo:
            return self._state(repo)

    def conflicted_paths(self, handle: RepositoryHandle) -> list[str]:
        with self.open(handle.path) as repo:
            return self._read_conflicts(repo)

    def resolve_commit(self, repo: DulwichRepo, ref: str) -> bytes:
        """Resolve a symbolic or abbreviated ref name (or a commit id) to a commit sha."""
        candidates = [ref.encode("utf-8")]
        if not ref.startswith("refs/") and ref != "HEAD":
            candidates += [f"refs/heads/{ref}".encode(), f"refs/remotes/{ref}".encode(), f"refs/tags/{ref}".encode()]
        sha = None
        for name in candidates:
            try:
                sha = repo.refs[name]
                break
            except KeyError:
                continue
        if sha is None and len(ref) == 40:
            try:
                repo[ref.encode("ascii")]
                sha = ref.encode("ascii")
            except (KeyError, UnicodeEncodeError, ValueError):
                sha = None
        if sha is None:
            raise NotFoundError(f"Ref '{ref}' not found")
        obj = repo[sha]
        while isinstance(obj, Tag):
            obj = repo[obj.object[1]]
        if not isinstance(obj, Commit):
            raise NotFoundError(f"Ref '{ref}' does not name a commit")
        return obj.id

    def log(self, handle: RepositoryHandle, ref: str, max_count: int = 100) -> list[dict]:
        """Commit history starting at ``ref``, newest first."""
        with self.open(handle.path) as repo:
            head = self.resolve_commit(repo, ref)
            commits = []
            for entry in Walker(repo.object_store, [head], max_entries=max_count):
                commit = entry.commit
                commits.append({
                    "id": _hex(commit.id),
                    "message": commit.message.decode("utf-8", errors="replace").strip(),
                    "author": commit.author.decode("utf-8", errors="replace"),
                    "time": commit.commit_time,
                    "parents": [_hex(p) for p in commit.parents],
                })
            return commits

    # -------------------------------------------------------------------------
    # Working tree + index writes
    # -------------------------------------------------------------------------

    def _full_path(self, repo: DulwichRepo, rel_path: str) -> str:
        root = os.path.abspath(repo.path)
        full = os.path.normpath(os.path.join(root, rel_path))
        rel = os.path.relpath(full, root)
        if os.path.isabs(rel_path) or rel == "." or rel == ".." or rel.startswith(".." + os.sep):
            raise NotFoundError(f"Path '{rel_path}' is outside the working tree")
        if rel.split(os.sep)[0] == CONTROL_DIR:
            raise NotFoundError(f"Path '{rel_path}' is inside the repository control directory")
        return full

    def _write_worktree(self, repo: DulwichRepo, rel_path: str, mode: int, data: bytes) -> str:
        full = self._full_path(repo, rel_path)
        if os.path.lexists(full):
            os.unlink(full)
        os.makedirs(os.path.dirname(full), exist_ok=True)
        if stat.S_ISLNK(mode):
            os.symlink(os.fsdecode(data), full)
        else:
            with open(full, "wb") as f:
                f.write(data)
            if mode & 0o111:
                os.chmod(full, 0o755)
        return full

    def _apply_changes(self, repo: DulwichRepo, index, changes: dict[str, tuple[int, bytes] | None]) -> None:
        """Write tree entries to both working tree and index (None deletes)."""
        for rel_path, entry in sorted(changes.items()):
            path_bytes = rel_path.encode("utf-8")
            if entry is None:
                full = self._full_path(repo, rel_path)
                if os.path.lexists(full):
                    os.unlink(full)
                if path_bytes in index:
                    del index[path_bytes]
                continue
            mode, sha = entry
            full = self._write_worktree(repo, rel_path, mode, repo[sha].data)
            index[path_bytes] = index_entry_from_stat(os.lstat(full), sha, mode=mode)

    def read_file(self, handle: RepositoryHandle, rel_path: str) -> bytes:
        with self.open(handle.path) as repo:
            full = self._full_path(repo, rel_path)
            if not os.path.isfile(full):
                raise NotFoundError(f"File '{rel_path}' not found")
            with open(full, "rb") as f:
                return f.read()

    def write_file(self, handle: RepositoryHandle, rel_path: str, data: bytes) -> None:
        with self.open(handle.path) as repo:
            self._write_worktree(repo, rel_path, 0o100644, data)

    def stage_all(self, handle: RepositoryHandle) -> list[str]:
        """Stage every change in the working tree (``git add -A``). Returns the staged paths."""
        with self.open(handle.path) as repo:
            state = self._state(repo)
            index = repo.open_index()
            staged = []
            # A conflicted path gone from both index and disk was resolved by deletion
            for rel_path in sorted(set(state.index) | set(state.worktree) | state.conflicts):
                path_bytes = rel_path.encode("utf-8")
                if rel_path not in state.worktree:
                    if path_bytes in index:
                        del index[path_bytes]
                    staged.append(rel_path)
                    continue
                if state.index.get(rel_path) == state.worktree[rel_path] and rel_path not in state.conflicts:
                    continue
                full = self._full_path(repo, rel_path)
                st = os.lstat(full)
                if stat.S_ISLNK(st.st_mode):
                    blob = Blob.from_string(os.fsencode(os.readlink(full)))
                else:
                    with open(full, "rb") as f:
                        blob = Blob.from_string(f.read())
                repo.object_store.add_object(blob)
                index[path_bytes] = index_entry_from_stat(st, blob.id, mode=cleanup_mode(st.st_mode))
                staged.append(rel_path)
            index.write()
            remaining = [p for p in state.conflicts if p not in staged]
            self._write_conflicts(repo, remaining)
            logger.info(f"Staged {len(staged)} path(s) in {handle.project_id[:8]}")
            return staged

    def _make_commit(self, tree: bytes, parents: list[bytes], message: str) -> Commit:
        commit = Commit()
        commit.tree = tree
        commit.parents = parents
        commit.author = commit.committer = self.committer.encode("utf-8")
        commit.commit_time = commit.author_time = int(time.time())
        commit.commit_timezone = commit.author_timezone = 0
        commit.encoding = b"UTF-8"
        commit.message = message.encode("utf-8") if message.endswith("\n") else f"{message}\n".encode("utf-8")
        return commit

    def commit(self, handle: RepositoryHandle, message: str, amend: bool = False) -> str:
        """Commit the index. Completes a pending merge when MERGE_HEAD is present."""
        with self.open(handle.path) as repo:
            if self._read_conflicts(repo):
                raise RejectedError("Cannot commit with unresolved merge conflicts", UNRESOLVED_CONFLICTS)
            head_sha = self._head_sha(repo)
            if amend:
                if head_sha is None:
                    raise MalformedError("Nothing to amend: the repository has no commits")
                parents = list(repo[head_sha].parents)
            else:
                parents = [head_sha] if head_sha is not None else []
            merge_head = self._read_merge_head(repo)
            if merge_head is not None and merge_head not in parents:
                parents.append(merge_head)

            tree = repo.open_index().commit(repo.object_store)
            commit = self._make_commit(tree, parents, message)
            repo.object_store.add_object(commit)
            repo.refs[b"HEAD"] = commit.id
            self._clear_merge_state(repo)
            logger.info(f"Committed {_hex(commit.id)[:8]} in {handle.project_id[:8]} (amend={amend})")
            return _hex(commit.id)

    def checkout(self, handle: RepositoryHandle, branch: str) -> str:
        """Switch HEAD to a local branch, updating index and working tree."""
        with self.open(handle.path) as repo:
            ref = f"refs/heads/{branch}".encode("utf-8")
            try:
                target = repo.refs[ref]
            except KeyError:
                raise NotFoundError(f"Branch '{branch}' not found")
            if self._read_merge_head(repo) is not None:
                raise RejectedError("A merge is in progress", MERGE_IN_PROGRESS)
            changes = self._tree_diff(
                self._tree_entries(repo, self._head_sha(repo)), self._tree_entries(repo, target)
            )
            self._ensure_clean(repo, changes)
            index = repo.open_index()
            self._apply_changes(repo, index, changes)
            index.write()
            repo.refs.set_symbolic_ref(b"HEAD", ref)
            logger.info(f"Checked out {branch} in {handle.project_id[:8]}")
            return _hex(target)

    # -------------------------------------------------------------------------
    # Merge state machine
    # -------------------------------------------------------------------------

    def _read_merge_head(self, repo: DulwichRepo) -> bytes | None:
        path = os.path.join(repo.controldir(), MERGE_HEAD_FILE)
        if not os.path.exists(path):
            return None
        with open(path, "rb") as f:
            return f.read().strip() or None

    def _read_conflicts(self, repo: DulwichRepo) -> list[str]:
        path = os.path.join(repo.controldir(), MERGE_CONFLICTS_FILE)
        if not os.path.exists(path):
            return []
        with open(path, "r", encoding="utf-8") as f:
            return [line.rstrip("\n") for line in f if line.strip()]

    def _write_conflicts(self, repo: DulwichRepo, paths: list[str]) -> None:
        path = os.path.join(repo.controldir(), MERGE_CONFLICTS_FILE)
        if not paths:
            if os.path.exists(path):
                os.unlink(path)
            return
        with open(path, "w", encoding="utf-8") as f:
            f.writelines(f"{p}\n" for p in sorted(paths))

    def _clear_merge_state(self, repo: DulwichRepo) -> None:
        merge_head = os.path.join(repo.controldir(), MERGE_HEAD_FILE)
        if os.path.exists(merge_head):
            os.unlink(merge_head)
        self._write_conflicts(repo, [])

    def _is_ancestor(self, repo: DulwichRepo, ancestor_sha: bytes, descendant_sha: bytes) -> bool:
        """Check if ancestor_sha is reachable from descendant_sha."""
        for entry in Walker(repo.object_store, [descendant_sha]):
            if entry.commit.id == ancestor_sha:
                return True
        return False

    def _find_merge_base(self, repo: DulwichRepo, sha1: bytes, sha2: bytes) -> bytes | None:
        """Find the common ancestor (merge base) of two commits."""
        ancestors1 = {entry.commit.id for entry in Walker(repo.object_store, [sha1])}
        for entry in Walker(repo.object_store, [sha2]):
            if entry.commit.id in ancestors1:
                return entry.commit.id
        return None

    def _tree_diff(self, old: TreeEntries, new: TreeEntries) -> dict[str, tuple[int, bytes] | None]:
        changes = {}
        for path in set(old) | set(new):
            if old.get(path) != new.get(path):
                changes[path] = new.get(path)
        return changes

    def _ensure_clean(self, repo: DulwichRepo, paths) -> None:
        """Reject when local, uncommitted changes touch any of ``paths``."""
        report = classify(self._state(repo))
        dirty = report.dirty_paths() & set(paths)
        if dirty:
            raise RejectedError(
                f"Local changes would be overwritten: {', '.join(sorted(dirty))}",
                DIRTY_WORKTREE,
            )

    def _merge_entries(self, base: TreeEntries, ours: TreeEntries, theirs: TreeEntries):
        """
        Three-way merge of flattened trees.

        - If entry unchanged in ours, take theirs
        - If entry unchanged in theirs, take ours
        - If both changed the same way, take either
        - If both changed differently, conflict (ours stays in the merged tree)
        """
        merged: TreeEntries = {}
        conflicts = []
        for path in sorted(set(base) | set(ours) | set(theirs)):
            b, o, t = base.get(path), ours.get(path), theirs.get(path)
            if o == t:
                if o:
                    merged[path] = o
            elif o == b:
                if t:
                    merged[path] = t
            elif t == b:
                if o:
                    merged[path] = o
            else:
                conflicts.append(path)
                if o:
                    merged[path] = o
        return merged, conflicts

    def merge(self, handle: RepositoryHandle, ref: str) -> MergeOutcome:
        """Merge ``ref`` into the current branch."""
        with self.open(handle.path) as repo:
            theirs_sha = self.resolve_commit(repo, ref)
            if self._read_merge_head(repo) is not None:
                raise RejectedError("A merge is already in progress", MERGE_IN_PROGRESS)
            head_sha = self._head_sha(repo)

            if head_sha is not None and (theirs_sha == head_sha or self._is_ancestor(repo, theirs_sha, head_sha)):
                logger.info(f"Merge of {ref} into {handle.project_id[:8]}: already up to date")
                return MergeOutcome(MergeStatus.ALREADY_UP_TO_DATE, head=_hex(head_sha))

            head_entries = self._tree_entries(repo, head_sha)
            theirs_entries = self._tree_entries(repo, theirs_sha)

            if head_sha is None or self._is_ancestor(repo, head_sha, theirs_sha):
                changes = self._tree_diff(head_entries, theirs_entries)
                self._ensure_clean(repo, changes)
                index = repo.open_index()
                self._apply_changes(repo, index, changes)
                index.write()
                repo.refs[b"HEAD"] = theirs_sha
                logger.info(f"Fast-forward merge of {ref} into {handle.project_id[:8]} -> {_hex(theirs_sha)[:8]}")
                return MergeOutcome(MergeStatus.FAST_FORWARD, head=_hex(theirs_sha))

            base_sha = self._find_merge_base(repo, head_sha, theirs_sha)
            base_entries = self._tree_entries(repo, base_sha)
            merged, conflicts = self._merge_entries(base_entries, head_entries, theirs_entries)

            changes = self._tree_diff(head_entries, merged)
            self._ensure_clean(repo, set(changes) | set(conflicts))
            index = repo.open_index()
            self._apply_changes(repo, index, changes)

            if not conflicts:
                index.write()
                tree = commit_tree(
                    repo.object_store,
                    [(p.encode("utf-8"), sha, mode) for p, (mode, sha) in sorted(merged.items())],
                )
                branch = self.current_branch(repo) or "HEAD"
                commit = self._make_commit(tree, [head_sha, theirs_sha], f"Merge '{ref}' into {branch}")
                repo.object_store.add_object(commit)
                repo.refs[b"HEAD"] = commit.id
                logger.info(f"Merged {ref} into {handle.project_id[:8]}: {_hex(commit.id)[:8]}")
                return MergeOutcome(MergeStatus.MERGED, head=_hex(commit.id))

            # Conflicted: index keeps our side, working tree gets marker bodies
            for path in conflicts:
                ours = head_entries.get(path)
                theirs = theirs_entries.get(path)
                body = render_conflict(
                    path,
                    repo[ours[1]].data if ours else None,
                    repo[theirs[1]].data if theirs else None,
                    theirs_label=_hex(theirs_sha),
                )
                self._write_worktree(repo, path, 0o100644, body)
            index.write()
            with open(os.path.join(repo.controldir(), MERGE_HEAD_FILE), "wb") as f:
                f.write(theirs_sha + b"\n")
            self._write_conflicts(repo, conflicts)
            logger.info(f"Merge of {ref} into {handle.project_id[:8]} conflicted on {len(conflicts)} path(s)")
            return MergeOutcome(MergeStatus.CONFLICTED, head=_hex(head_sha), conflicts=conflicts)

    # -------------------------------------------------------------------------
    # Remotes
    # -------------------------------------------------------------------------

    def list_remotes(self, handle: RepositoryHandle) -> list[RemoteInfo]:
        with self.open(handle.path) as repo:
            config = repo.get_config()
            remotes = []
            for section in config.sections():
                if len(section) != 2 or section[0] != b"remote":
                    continue
                try:
                    url = config.get(section, b"url").decode("utf-8")
                except KeyError:
                    url = ""
                remotes.append(RemoteInfo(name=section[1].decode("utf-8"), url=url))
            return sorted(remotes, key=lambda r: r.name)

    def get_remote(self, handle: RepositoryHandle, remote: str) -> RemoteInfo:
        for info in self.list_remotes(handle):
            if info.name == remote:
                return info
        raise NotFoundError(f"Remote '{remote}' not found")

    def list_remote_branches(self, handle: RepositoryHandle, remote: str) -> list[RemoteBranchInfo]:
        self.get_remote(handle, remote)
        prefix = f"refs/remotes/{remote}/"
        with self.open(handle.path) as repo:
            branches = []
            for name in sorted(repo.refs.allkeys()):
                ref = name.decode("utf-8")
                if not ref.startswith(prefix) or ref == f"{prefix}HEAD":
                    continue
                branches.append(RemoteBranchInfo(
                    remote=remote, branch=ref[len(prefix):], ref=ref, commit=_hex(repo.refs[name]),
                ))
            return branches

    def get_remote_branch(self, handle: RepositoryHandle, remote: str, branch: str) -> RemoteBranchInfo:
        for info in self.list_remote_branches(handle, remote):
            if info.branch == branch:
                return info
        raise NotFoundError(f"Branch '{branch}' not found on remote '{remote}'")

    # -------------------------------------------------------------------------
    # Network operations (task-backed)
    # -------------------------------------------------------------------------

    def _translate_transport_error(self, exc: Exception, action: str) -> Exception:
        if isinstance(exc, HTTPUnauthorized):
            return EngineFailure(f"{action} failed: authentication required", AUTHENTICATION_FAILURE)
        if isinstance(exc, TRANSPORT_ERRORS):
            return EngineFailure(f"{action} failed: {exc}", NETWORK_FAILURE)
        return EngineFailure(f"{action} failed: {exc}", ENGINE_FAILURE)

    def clone(self, url: str, target: Path) -> Path:
        """Clone ``url`` into ``target`` with a checked-out working tree."""
        logger.info(f"Cloning {url} into {target}")
        try:
            repo = porcelain.clone(url, str(target), checkout=True, errstream=BytesIO())
        except FileExistsError:
            raise RejectedError(f"Clone target {target.name} already exists", TARGET_EXISTS)
        except Exception as e:
            raise self._translate_transport_error(e, f"Clone of {url}")
        repo.close()
        return target

    def fetch(self, handle: RepositoryHandle, remote: str) -> list[str]:
        """Fetch ``remote`` and update its remote-tracking refs. Returns the updated refs."""
        info = self.get_remote(handle, remote)
        with self.open(handle.path) as repo:
            try:
                client, path = get_transport_and_path(info.url)
                result = client.fetch(path, repo)
            except Exception as e:
                raise self._translate_transport_error(e, f"Fetch from {remote}")
            updated = []
            for ref, sha in sorted(result.refs.items()):
                if sha is None or not ref.startswith(b"refs/heads/"):
                    continue
                tracking = b"refs/remotes/" + remote.encode("utf-8") + b"/" + ref[11:]
                repo.refs[tracking] = sha
                updated.append(tracking.decode("utf-8"))
            logger.info(f"Fetched {len(updated)} ref(s) from {remote} into {handle.project_id[:8]}")
            return updated

    def push(self, handle: RepositoryHandle, remote: str, branch: str, src_ref: str = "HEAD",
             force: bool = False) -> str:
        """
        Push ``src_ref`` to ``branch`` on ``remote``. Returns the pushed commit id.

        The remote-tracking ref only moves once the remote reports the ref as
        accepted; a per-ref refusal (hook, protected branch) is Rejected.
        """
        info = self.get_remote(handle, remote)
        target_ref = f"refs/heads/{branch}".encode("utf-8")
        with self.open(handle.path) as repo:
            local_sha = self.resolve_commit(repo, src_ref)

            def update_refs(refs):
                remote_sha = refs.get(target_ref)
                if not force and remote_sha not in (None, ZERO_SHA, local_sha):
                    if remote_sha not in repo.object_store or not self._is_ancestor(repo, remote_sha, local_sha):
                        raise RejectedError(
                            f"Push to {remote}/{branch} rejected: remote advanced (non-fast-forward)",
                            NON_FAST_FORWARD,
                        )
                return {target_ref: local_sha}

            def generate_pack_data(have, want, ofs_delta=False, progress=None):
                return repo.generate_pack_data(set(have), set(want), progress=progress, ofs_delta=ofs_delta)

            try:
                client, path = get_transport_and_path(info.url)
                result = client.send_pack(path.encode("utf-8"), update_refs, generate_pack_data=generate_pack_data)
            except GatewayError:
                raise
            except SendPackError as e:
                raise RejectedError(f"Push to {remote}/{branch} rejected: {e}", PUSH_REJECTED)
            except Exception as e:
                raise self._translate_transport_error(e, f"Push to {remote}")

            refusal = (result.ref_status or {}).get(target_ref)
            if refusal is not None:
                reason = NON_FAST_FORWARD if "non-fast-forward" in refusal or "fetch first" in refusal else PUSH_REJECTED
                raise RejectedError(f"Push to {remote}/{branch} rejected: {refusal}", reason)

            repo.refs[f"refs/remotes/{remote}/{branch}".encode("utf-8")] = local_sha
            logger.info(f"Pushed {_hex(local_sha)[:8]} to {remote}/{branch} from {handle.project_id[:8]}")
            return _hex(local_sha)
