from typing import Literal

from pydantic import BaseModel

from repogate.schemas.status import StatusRead


class CommitRequest(BaseModel):
    """Either a commit (``message``) or a merge (``merge`` names the ref to merge)."""
    message: str | None = None
    amend: bool = False
    merge: str | None = None


class CommitRead(BaseModel):
    id: str
    location: str


class MergeRead(BaseModel):
    result: Literal["already_up_to_date", "fast_forward", "merged"]
    id: str | None = None


class ConflictedMergeRead(StatusRead):
    result: Literal["conflicted"] = "conflicted"
    conflicts: list[str] = []


class CheckoutRequest(BaseModel):
    branch: str


class HeadRead(BaseModel):
    branch: str | None = None  # None when HEAD is detached
    id: str | None = None  # None before the first commit


class CommitLogEntry(BaseModel):
    id: str
    message: str
    author: str
    time: int
    parents: list[str]
    location: str


class CloneRequest(BaseModel):
    url: str
    name: str | None = None


class CloneRead(BaseModel):
    id: str
    name: str
    content_location: str
    location: str


class RemoteBranchRead(BaseModel):
    name: str  # Full tracking ref, e.g. refs/remotes/origin/master
    id: str
    location: str
    commit: str


class RemoteRead(BaseModel):
    name: str
    url: str
    location: str
    children: list[RemoteBranchRead] | None = None


class RemoteListRead(BaseModel):
    children: list[RemoteRead]


class RemoteActionRequest(BaseModel):
    """``fetch`` or push (``push_src_ref`` names the local ref to push)."""
    fetch: bool = False
    push_src_ref: str | None = None
    force: bool = False
