from fastapi import APIRouter, Depends

from repogate.dependencies import require_protocol_version
from repogate.schemas import TaskCancelRead, TaskRead, task_to_read
from repogate.services.gateway import gateway

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


@router.get("/{task_id}", response_model=TaskRead)
async def get_task(task_id: str):
    """
    Poll a task.

    Unknown ids and ids of tasks evicted after the retention window are both
    404; a terminal task returns the same record on every poll.
    """
    return task_to_read(gateway.tasks.poll(task_id))


@router.delete("/{task_id}", response_model=TaskCancelRead, dependencies=[Depends(require_protocol_version)])
async def cancel_task(task_id: str):
    return TaskCancelRead(id=task_id, cancelled=gateway.tasks.cancel(task_id))
