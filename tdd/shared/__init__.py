# Cross-cutting test utilities shared across all test types

from .git_helpers import (
    PROTOCOL_HEADERS,
    bare_origin,
    branch_commit,
    clone_of,
    commit_files,
    create_branch,
    diverged_repository,
    init_repository,
    switch_branch,
    write_files,
)

__all__ = [
    "PROTOCOL_HEADERS",
    "bare_origin",
    "branch_commit",
    "clone_of",
    "commit_files",
    "create_branch",
    "diverged_repository",
    "init_repository",
    "switch_branch",
    "write_files",
]
