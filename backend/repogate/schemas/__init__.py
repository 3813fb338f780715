from repogate.schemas.project import ProjectCreate, ProjectRead, GitLinks
from repogate.schemas.status import StatusRead, StatusEntryRead
from repogate.schemas.task import TaskRead, TaskCancelRead, task_to_read
from repogate.schemas.git import (
    CheckoutRequest,
    CloneRead,
    CloneRequest,
    CommitLogEntry,
    CommitRead,
    CommitRequest,
    ConflictedMergeRead,
    HeadRead,
    MergeRead,
    RemoteActionRequest,
    RemoteBranchRead,
    RemoteListRead,
    RemoteRead,
)

__all__ = [
    "ProjectCreate",
    "ProjectRead",
    "GitLinks",
    "StatusRead",
    "StatusEntryRead",
    "TaskRead",
    "TaskCancelRead",
    "task_to_read",
    "CheckoutRequest",
    "CloneRead",
    "CloneRequest",
    "CommitLogEntry",
    "CommitRead",
    "CommitRequest",
    "ConflictedMergeRead",
    "HeadRead",
    "MergeRead",
    "RemoteActionRequest",
    "RemoteBranchRead",
    "RemoteListRead",
    "RemoteRead",
]
