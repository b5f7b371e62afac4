"""Task instances and the scheduler that drives them."""

from blast.scheduler.instance import (
    AssetInstance,
    ColumnTestInstance,
    TaskInstance,
    TaskInstanceStatus,
    TaskInstanceType,
)
from blast.scheduler.scheduler import WORK_QUEUE_CLOSED, Scheduler, TaskExecutionResult

__all__ = [
    "AssetInstance",
    "ColumnTestInstance",
    "TaskInstance",
    "TaskInstanceStatus",
    "TaskInstanceType",
    "WORK_QUEUE_CLOSED",
    "Scheduler",
    "TaskExecutionResult",
]
