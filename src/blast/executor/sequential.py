"""Runs one task instance with the operator registered for its type."""

from __future__ import annotations

from blast.core.errors import ExecutionError
from blast.executor.operator import TaskTypeMap
from blast.scheduler.instance import AnyTaskInstance


class Sequential:
    def __init__(self, task_type_map: TaskTypeMap):
        self.task_type_map = task_type_map

    async def run_single_task(self, instance: AnyTaskInstance) -> None:
        operators = self.task_type_map.get(instance.type, {})
        operator = operators.get(instance.asset.type)
        if operator is None:
            raise ExecutionError(
                f"there is no executor configured for the task type, task cannot be run: {instance.asset.type}"
            )
        await operator.run(instance)
