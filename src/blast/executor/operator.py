"""Operator contract and the default operator for every known task type."""

from __future__ import annotations
import logging
from typing import Dict, Protocol

from blast.scheduler.instance import AnyTaskInstance, TaskInstanceType

logger = logging.getLogger("blast.executor")

# Task types blast knows about. Types without a dedicated operator run as no-ops.
DEFAULT_TASK_TYPES = [
    "bq.sql",
    "bq.sensor.table",
    "bq.sensor.query",
    "bq.cost_tracker",
    "bq.transfer",
    "bq.sensor.partition",
    "bash",
    "gcs.from.s3",
    "gcs.sensor.object_sensor_with_prefix",
    "gcs.sensor.object",
    "empty",
    "athena.sql",
    "athena.sensor.query",
    "python",
    "python.beta",
    "python.legacy",
    "s3.sensor.key_sensor",
    "sf.sql",
    "adjust.export.bq",
]


class Operator(Protocol):
    async def run(self, instance: AnyTaskInstance) -> None:
        """Execute the instance; raising marks it as failed."""
        ...


TaskTypeMap = Dict[TaskInstanceType, Dict[str, Operator]]


class NoOpOperator:
    """Does nothing, for task types that are realized outside blast."""

    async def run(self, instance: AnyTaskInstance) -> None:
        logger.debug(f"No-op for '{instance.name}' ({instance.asset.type})")


def default_executors() -> TaskTypeMap:
    """A task type map with a no-op for every known type."""
    noop = NoOpOperator()
    return {
        TaskInstanceType.MAIN: {t: noop for t in DEFAULT_TASK_TYPES},
        TaskInstanceType.COLUMN_CHECK: {t: noop for t in DEFAULT_TASK_TYPES},
    }
