from fastapi import APIRouter, Depends, Response

from repogate.dependencies import require_protocol_version
from repogate.errors import NotFoundError
from repogate.schemas import CloneRead, CloneRequest, task_to_read
from repogate.services.gateway import CLONE_LOCATION, TASK_LOCATION, gateway

router = APIRouter(prefix="/api/git/clone", tags=["clone"])


@router.post("", status_code=201, dependencies=[Depends(require_protocol_version)])
async def clone_repository(body: CloneRequest, response: Response):
    """
    Start cloning ``url``. Responds immediately with the task location in the
    Location header; the finished task's location is the clone resource.
    """
    task_id = gateway.submit_clone(body.url, body.name)
    response.headers["Location"] = TASK_LOCATION.format(task_id=task_id)
    return task_to_read(gateway.tasks.poll(task_id))


@router.get("/{clone_id}", response_model=CloneRead)
async def get_clone(clone_id: str, response: Response):
    path = gateway.clone_path(clone_id)
    if "/" in clone_id or clone_id.startswith(".") or not gateway.engine.is_repository(path):
        raise NotFoundError(f"Clone '{clone_id}' not found")
    location = CLONE_LOCATION.format(clone_id=clone_id)
    response.headers["Location"] = location
    return CloneRead(
        id=clone_id,
        name=clone_id,
        content_location=str(path.resolve()),
        location=location,
    )
