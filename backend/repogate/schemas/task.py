"""
Task resource schemas.

A task renders as one of four shapes, discriminated by ``state``: only a
succeeded task has a ``location`` and only a failed task has an ``error``.
"""
from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

from repogate.services.gateway import TASK_LOCATION
from repogate.services.task_registry import TaskKind, TaskRecord, TaskState


class TaskErrorRead(BaseModel):
    reason: str
    message: str


class TaskBase(BaseModel):
    id: str
    kind: TaskKind
    created_at: datetime
    task_location: str


class WaitingTaskRead(TaskBase):
    state: Literal["waiting"] = "waiting"


class RunningTaskRead(TaskBase):
    state: Literal["running"] = "running"
    cancel_requested: bool = False


class SucceededTaskRead(TaskBase):
    state: Literal["succeeded"] = "succeeded"
    location: str


class FailedTaskRead(TaskBase):
    state: Literal["failed"] = "failed"
    error: TaskErrorRead


TaskRead = Annotated[
    Union[WaitingTaskRead, RunningTaskRead, SucceededTaskRead, FailedTaskRead],
    Field(discriminator="state"),
]

task_adapter = TypeAdapter(TaskRead)


def task_to_read(record: TaskRecord) -> BaseModel:
    common = {
        "id": record.id,
        "kind": record.kind,
        "created_at": record.created_at,
        "task_location": TASK_LOCATION.format(task_id=record.id),
    }
    if record.state == TaskState.WAITING:
        return WaitingTaskRead(**common)
    if record.state == TaskState.RUNNING:
        return RunningTaskRead(**common, cancel_requested=record.cancel_requested)
    if record.state == TaskState.SUCCEEDED:
        return SucceededTaskRead(**common, location=record.result_location)
    return FailedTaskRead(
        **common,
        error=TaskErrorRead(reason=record.error.reason, message=record.error.message),
    )


class TaskCancelRead(BaseModel):
    id: str
    cancelled: bool
