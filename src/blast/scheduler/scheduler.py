"""Dependency-driven scheduler feeding ready task instances to executors."""

from __future__ import annotations
import asyncio
import logging
from collections import deque
from dataclasses import dataclass

from blast.core.errors import ExecutionError, UpstreamFailedError
from blast.pipeline.models import Asset, Pipeline
from blast.scheduler.instance import (
    AnyTaskInstance,
    AssetInstance,
    ColumnTestInstance,
    TaskInstanceStatus,
)

logger = logging.getLogger("blast.scheduler")


class _WorkQueueClosed:
    def __repr__(self) -> str:
        return "WORK_QUEUE_CLOSED"


# Put on the work queue once no more work will be published.
WORK_QUEUE_CLOSED = _WorkQueueClosed()

IN_FLIGHT_STATUSES = frozenset({TaskInstanceStatus.QUEUED, TaskInstanceStatus.RUNNING})


@dataclass
class TaskExecutionResult:
    instance: AnyTaskInstance
    error: BaseException | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


class Scheduler:
    """Owns the task instances of one pipeline run and decides what runs next.

    Ready instances are published on ``work_queue``; executors report back on
    ``results``. All state changes go through ``tick`` under a single lock.

    Usage:
        scheduler = Scheduler(pipeline)
        executor.start(scheduler.work_queue, scheduler.results)
        results = await scheduler.run()
    """

    def __init__(self, pipeline: Pipeline, work_queue_size: int = 100):
        self.pipeline = pipeline
        self.task_instances: list[AnyTaskInstance] = []
        self.task_name_map: dict[str, AssetInstance] = {}
        self.work_queue: asyncio.Queue = asyncio.Queue(maxsize=work_queue_size)
        self.results: asyncio.Queue = asyncio.Queue()
        self._lock = asyncio.Lock()
        self._work_queue_closed = False
        self._build_instances()

    def _build_instances(self) -> None:
        asset_instances: list[AssetInstance] = []
        for asset in self.pipeline.tasks:
            instance = AssetInstance(pipeline=self.pipeline, asset=asset)
            asset_instances.append(instance)
            self.task_instances.append(instance)
            self.task_name_map.setdefault(asset.name, instance)

            for column, test in asset.column_tests():
                test_instance = ColumnTestInstance(parent=instance, column=column, test=test)
                test_instance.add_upstream(instance)
                instance.add_downstream(test_instance)
                self.task_instances.append(test_instance)

        for instance in asset_instances:
            for dep in instance.asset.depends_on:
                upstream = self.task_name_map.get(dep)
                if upstream is None or upstream in instance.upstream:
                    continue
                instance.add_upstream(upstream)
                upstream.add_downstream(instance)

    # ─── State manipulation ───

    def mark_all(self, status: TaskInstanceStatus) -> None:
        for instance in self.task_instances:
            instance.mark_as(status)

    def mark_task_instance(
        self,
        instance: AnyTaskInstance,
        status: TaskInstanceStatus,
        downstream: bool = False,
    ) -> None:
        """Set the status of an instance, and of its downstream closure if asked."""
        if not downstream:
            instance.mark_as(status)
            return
        for target in self._downstream_closure(instance):
            target.mark_as(status)

    def mark_asset(self, asset: Asset, status: TaskInstanceStatus, downstream: bool = False) -> None:
        """Set the status of an asset's instance together with its column tests."""
        for instance in self.task_instances:
            if instance.asset is not asset:
                continue
            self.mark_task_instance(instance, status, downstream=downstream)

    def get_task_instances_by_status(self, status: TaskInstanceStatus) -> list[AnyTaskInstance]:
        return [i for i in self.task_instances if i.status == status]

    def will_run_task_of_type(self, task_type: str) -> bool:
        return any(
            i.status == TaskInstanceStatus.PENDING and i.asset.type == task_type
            for i in self.task_instances
        )

    @staticmethod
    def _downstream_closure(instance: AnyTaskInstance) -> list[AnyTaskInstance]:
        """The instance followed by everything downstream of it, each once."""
        seen = {id(instance)}
        closure = [instance]
        queue = deque([instance])
        while queue:
            for child in queue.popleft().downstream:
                if id(child) in seen:
                    continue
                seen.add(id(child))
                closure.append(child)
                queue.append(child)
        return closure

    def _mark_upstream_failed(self, instance: AnyTaskInstance) -> None:
        seen = {id(instance)}
        queue = deque([instance])
        while queue:
            for child in queue.popleft().downstream:
                if id(child) in seen or child.completed():
                    continue
                seen.add(id(child))
                child.mark_as(TaskInstanceStatus.UPSTREAM_FAILED)
                queue.append(child)

    # ─── Work queue ───

    def close_work_queue(self) -> None:
        """Tell every worker to stop once the queue is drained."""
        if self._work_queue_closed:
            return
        self._work_queue_closed = True

        if self.work_queue.full():
            while not self.work_queue.empty():
                self.work_queue.get_nowait()
        self.work_queue.put_nowait(WORK_QUEUE_CLOSED)

    def _schedulable_instances(self) -> list[AnyTaskInstance]:
        return [
            instance for instance in self.task_instances
            if instance.status == TaskInstanceStatus.PENDING
            and all(up.completed() for up in instance.upstream)
        ]

    # ─── Main loop ───

    async def tick(self, result: TaskExecutionResult) -> bool:
        """Absorb one result and publish whatever became ready.

        Returns True once every instance reached a terminal status.
        """
        async with self._lock:
            instance = result.instance
            instance.mark_as(TaskInstanceStatus.SUCCEEDED)
            if result.error is not None:
                logger.debug(f"Task '{instance.name}' failed: {result.error}")
                instance.mark_as(TaskInstanceStatus.FAILED)
                self._mark_upstream_failed(instance)

            if all(i.completed() for i in self.task_instances):
                self.close_work_queue()
                return True

            ready = self._schedulable_instances()
            if not ready and not any(i.status in IN_FLIGHT_STATUSES for i in self.task_instances):
                self.close_work_queue()
                pending = [i.name for i in self.get_task_instances_by_status(TaskInstanceStatus.PENDING)]
                raise ExecutionError(
                    f"no task can be scheduled, pending tasks wait on each other: {', '.join(pending)}"
                )

            for ready_instance in ready:
                ready_instance.mark_as(TaskInstanceStatus.QUEUED)
                await self.work_queue.put(ready_instance)
            return False

    async def kickstart(self) -> bool:
        """Publish the instances without upstreams."""
        start = AssetInstance(pipeline=self.pipeline, asset=Asset(name="start"))
        return await self.tick(TaskExecutionResult(instance=start))

    async def run(self) -> list[TaskExecutionResult]:
        """Drive the pipeline until every instance is terminal.

        The returned list holds one result per executed instance plus one
        UpstreamFailedError result for each instance that was skipped.
        Cancelling the task running this coroutine closes the work queue.
        """
        results: list[TaskExecutionResult] = []
        try:
            finished = await self.kickstart()
            while not finished:
                result = await self.results.get()
                results.append(result)
                finished = await self.tick(result)
        except asyncio.CancelledError:
            self.close_work_queue()
            raise

        for instance in self.get_task_instances_by_status(TaskInstanceStatus.UPSTREAM_FAILED):
            results.append(TaskExecutionResult(
                instance=instance,
                error=UpstreamFailedError(f"an upstream of '{instance.name}' failed"),
            ))
        return results
