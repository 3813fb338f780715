"""
Git resources of a linked project: status, index, commits/merge, HEAD and remotes.

Status, staging, commit, merge and listings run synchronously against the
repository. Fetch and push are accepted as tasks and answered with 201 and
the task location.
"""

from fastapi import APIRouter, Depends, Query, Response

from repogate.dependencies import get_repository, require_protocol_version
from repogate.errors import MalformedError
from repogate.schemas import (
    CheckoutRequest,
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
    StatusRead,
    task_to_read,
)
from repogate.services.engine import MergeStatus, RemoteBranchInfo, RemoteInfo, RepositoryHandle
from repogate.services.gateway import (
    COMMIT_LOCATION,
    REMOTE_BRANCH_LOCATION,
    REMOTE_LOCATION,
    TASK_LOCATION,
    gateway,
)

router = APIRouter(prefix="/api/projects/{project_id}/git", tags=["git"])


def _branch_read(project_id: str, info: RemoteBranchInfo) -> RemoteBranchRead:
    return RemoteBranchRead(
        name=info.ref,
        id=info.commit,
        location=REMOTE_BRANCH_LOCATION.format(project_id=project_id, remote=info.remote, branch=info.branch),
        commit=COMMIT_LOCATION.format(project_id=project_id, ref=info.ref),
    )


def _remote_read(project_id: str, info: RemoteInfo, branches: list[RemoteBranchInfo] | None = None) -> RemoteRead:
    return RemoteRead(
        name=info.name,
        url=info.url,
        location=REMOTE_LOCATION.format(project_id=project_id, remote=info.name),
        children=[_branch_read(project_id, b) for b in branches] if branches is not None else None,
    )


def _accepted(response: Response, task_id: str):
    response.headers["Location"] = TASK_LOCATION.format(task_id=task_id)
    return task_to_read(gateway.tasks.poll(task_id))


# -----------------------------------------------------------------------------
# Status / index / commit
# -----------------------------------------------------------------------------

@router.get("/status", response_model=StatusRead)
async def get_status(handle: RepositoryHandle = Depends(get_repository)):
    report = await gateway.status(handle)
    return StatusRead.from_report(handle.project_id, report)


@router.put("/index", dependencies=[Depends(require_protocol_version)])
async def stage_all(handle: RepositoryHandle = Depends(get_repository)):
    """Stage every working-tree change (new, modified and deleted files)."""
    staged = await gateway.stage_all(handle)
    return {"staged": staged}


@router.post("/commit", dependencies=[Depends(require_protocol_version)])
async def commit_or_merge(body: CommitRequest, handle: RepositoryHandle = Depends(get_repository)):
    """
    Commit the index, or merge a ref when ``merge`` is given.

    A conflicted merge is not an error: it answers 200 with the post-merge
    status, in which every conflicted path is listed.
    """
    if body.merge:
        outcome, report = await gateway.merge(handle, body.merge)
        if outcome.status == MergeStatus.CONFLICTED:
            status = StatusRead.from_report(handle.project_id, report)
            return ConflictedMergeRead(**status.model_dump(), conflicts=outcome.conflicts)
        return MergeRead(result=outcome.status.value, id=outcome.head)

    if not body.message or not body.message.strip():
        raise MalformedError("Commit message is required")
    commit_id = await gateway.commit(handle, body.message, amend=body.amend)
    return CommitRead(
        id=commit_id,
        location=COMMIT_LOCATION.format(project_id=handle.project_id, ref=commit_id),
    )


@router.get("/commit/{ref:path}", response_model=list[CommitLogEntry])
async def get_commit_log(
    ref: str,
    limit: int = Query(100, ge=1, le=1000),
    handle: RepositoryHandle = Depends(get_repository),
):
    """Commit history starting at ``ref`` (HEAD, branch, tracking ref or commit id)."""
    commits = await gateway.log(handle, ref, limit)
    return [
        CommitLogEntry(**c, location=COMMIT_LOCATION.format(project_id=handle.project_id, ref=c["id"]))
        for c in commits
    ]


# -----------------------------------------------------------------------------
# HEAD
# -----------------------------------------------------------------------------

@router.get("/head", response_model=HeadRead)
async def get_head(handle: RepositoryHandle = Depends(get_repository)):
    branch, commit_id = await gateway.head(handle)
    return HeadRead(branch=branch, id=commit_id)


@router.post("/head", response_model=HeadRead, dependencies=[Depends(require_protocol_version)])
async def checkout_branch(body: CheckoutRequest, handle: RepositoryHandle = Depends(get_repository)):
    commit_id = await gateway.checkout(handle, body.branch)
    return HeadRead(branch=body.branch, id=commit_id)


# -----------------------------------------------------------------------------
# Remotes
# -----------------------------------------------------------------------------

@router.get("/remote", response_model=RemoteListRead)
async def list_remotes(handle: RepositoryHandle = Depends(get_repository)):
    """All configured remotes; a repository without remotes yields an empty list."""
    remotes = await gateway.list_remotes(handle)
    return RemoteListRead(children=[_remote_read(handle.project_id, r) for r in remotes])


@router.get("/remote/{remote}", response_model=RemoteRead)
async def get_remote(remote: str, handle: RepositoryHandle = Depends(get_repository)):
    info = await gateway.get_remote(handle, remote)
    branches = await gateway.list_branches(handle, remote)
    return _remote_read(handle.project_id, info, branches)


@router.get("/remote/{remote}/{branch:path}", response_model=RemoteBranchRead)
async def get_remote_branch(remote: str, branch: str, handle: RepositoryHandle = Depends(get_repository)):
    info = await gateway.get_branch(handle, remote, branch)
    return _branch_read(handle.project_id, info)


@router.post("/remote/{remote}", status_code=201, dependencies=[Depends(require_protocol_version)])
async def remote_action(
    remote: str,
    body: RemoteActionRequest,
    response: Response,
    handle: RepositoryHandle = Depends(get_repository),
):
    """Fetch every branch of ``remote``. Push targets a branch resource instead."""
    if not body.fetch:
        raise MalformedError("Expected {\"fetch\": true}; push requires a remote branch location")
    await gateway.get_remote(handle, remote)
    return _accepted(response, gateway.submit_fetch(handle, remote))


@router.post("/remote/{remote}/{branch:path}", status_code=201, dependencies=[Depends(require_protocol_version)])
async def remote_branch_action(
    remote: str,
    branch: str,
    body: RemoteActionRequest,
    response: Response,
    handle: RepositoryHandle = Depends(get_repository),
):
    """Push ``push_src_ref`` to this branch, or fetch its remote."""
    await gateway.get_remote(handle, remote)
    if body.push_src_ref:
        task_id = gateway.submit_push(handle, remote, branch, body.push_src_ref, body.force)
    elif body.fetch:
        task_id = gateway.submit_fetch(handle, remote)
    else:
        raise MalformedError("Expected either \"fetch\" or \"push_src_ref\"")
    return _accepted(response, task_id)
