"""
Scratch repository builders for tests.

Everything here talks to dulwich directly so fixtures do not depend on the
engine under test.
"""
import os
from io import BytesIO
from pathlib import Path

from dulwich import porcelain
from dulwich.repo import Repo

PROTOCOL_HEADERS = {"Gateway-Version": "1"}

TEST_AUTHOR = b"Test <test@example.com>"


def init_repository(path: Path) -> Path:
    """Create a working-tree repository whose HEAD points at master."""
    path.mkdir(parents=True, exist_ok=True)
    repo = porcelain.init(str(path))
    repo.refs.set_symbolic_ref(b"HEAD", b"refs/heads/master")
    repo.close()
    return path


def write_files(path: Path, files: dict[str, str | bytes]) -> None:
    for rel, content in files.items():
        full = path / rel
        full.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, str):
            content = content.encode("utf-8")
        full.write_bytes(content)


def commit_files(path: Path, files: dict[str, str | bytes], message: str) -> str:
    """Write, stage and commit ``files``. Returns the new commit id."""
    write_files(path, files)
    with Repo(str(path)) as repo:
        porcelain.add(repo, paths=[str(path / rel) for rel in files])
        sha = porcelain.commit(repo, message=message.encode("utf-8"), author=TEST_AUTHOR, committer=TEST_AUTHOR)
    return sha.decode("ascii")


def create_branch(path: Path, name: str) -> None:
    with Repo(str(path)) as repo:
        repo.refs[f"refs/heads/{name}".encode("utf-8")] = repo.refs[b"HEAD"]


def switch_branch(path: Path, name: str) -> None:
    """Point HEAD at ``name`` and make index and working tree match it."""
    ref = f"refs/heads/{name}".encode("utf-8")
    with Repo(str(path)) as repo:
        repo.refs.set_symbolic_ref(b"HEAD", ref)
        porcelain.reset(repo, "hard", ref)
        tracked = {p.decode("utf-8") for p in repo.open_index()}
    for dirpath, dirnames, filenames in os.walk(path):
        if ".git" in dirnames:
            dirnames.remove(".git")
        for filename in filenames:
            rel = os.path.relpath(os.path.join(dirpath, filename), path).replace(os.sep, "/")
            if rel not in tracked:
                os.unlink(os.path.join(dirpath, filename))


def diverged_repository(path: Path, filename: str = "conflict.txt") -> Path:
    """
    A repository whose master and ``feature`` branches both changed ``filename``.

    master holds "ours", feature holds "theirs"; HEAD is left on master.
    """
    init_repository(path)
    commit_files(path, {filename: "base\n"}, "Base")
    create_branch(path, "feature")
    commit_files(path, {filename: "ours\n"}, "Ours")
    switch_branch(path, "feature")
    commit_files(path, {filename: "theirs\n"}, "Theirs")
    switch_branch(path, "master")
    return path


def branch_commit(path: Path, name: str) -> str:
    with Repo(str(path)) as repo:
        return repo.refs[f"refs/heads/{name}".encode("utf-8")].decode("ascii")


def bare_origin(seed: Path, target: Path) -> Path:
    """Bare copy of ``seed`` to serve as a push/fetch remote."""
    porcelain.clone(str(seed), str(target), bare=True, checkout=False, errstream=BytesIO()).close()
    return target


def clone_of(origin: Path, target: Path) -> Path:
    porcelain.clone(str(origin), str(target), checkout=True, errstream=BytesIO()).close()
    return target
