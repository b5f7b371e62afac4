"""Worker pool consuming the scheduler's work queue."""

from __future__ import annotations
import asyncio
import logging
import time

from blast.executor.operator import TaskTypeMap
from blast.executor.sequential import Sequential
from blast.scheduler.instance import TaskInstanceStatus
from blast.scheduler.scheduler import WORK_QUEUE_CLOSED, TaskExecutionResult

logger = logging.getLogger("blast.executor.concurrent")


class Worker:
    """Takes instances off the work queue until it is closed."""

    def __init__(self, worker_id: str, executor: Sequential):
        self.worker_id = worker_id
        self.executor = executor
        self.current: str | None = None
        self.completed = 0

    async def run(self, work_queue: asyncio.Queue, results: asyncio.Queue) -> None:
        while True:
            instance = await work_queue.get()
            if instance is WORK_QUEUE_CLOSED:
                # Leave the marker for the other workers.
                work_queue.put_nowait(WORK_QUEUE_CLOSED)
                return

            self.current = instance.name
            instance.mark_as(TaskInstanceStatus.RUNNING)
            logger.info(f"[{self.worker_id}] Running: {instance.name}")
            start = time.monotonic()
            error: BaseException | None = None
            try:
                await self.executor.run_single_task(instance)
            except Exception as e:
                error = e

            duration = time.monotonic() - start
            if error is None:
                logger.info(f"[{self.worker_id}] Completed: {instance.name} ({duration:.3f}s)")
            else:
                logger.error(f"[{self.worker_id}] Failed: {instance.name} ({duration:.3f}s): {error}")

            self.current = None
            self.completed += 1
            await results.put(TaskExecutionResult(instance=instance, error=error))

    def info(self) -> dict:
        return {
            "worker_id": self.worker_id,
            "status": "busy" if self.current else "idle",
            "current": self.current,
            "completed": self.completed,
        }


class Concurrent:
    """N workers sharing one work queue.

    Usage:
        executor = Concurrent(task_type_map, worker_count=8)
        executor.start(scheduler.work_queue, scheduler.results)
        results = await scheduler.run()
        await executor.wait()
    """

    def __init__(self, task_type_map: TaskTypeMap, worker_count: int = 8):
        if worker_count < 1:
            raise ValueError("worker_count must be at least 1")
        executor = Sequential(task_type_map)
        self.workers = [Worker(f"worker-{i}", executor) for i in range(worker_count)]
        self._tasks: list[asyncio.Task] = []

    def start(self, work_queue: asyncio.Queue, results: asyncio.Queue) -> list[asyncio.Task]:
        self._tasks = [
            asyncio.create_task(w.run(work_queue, results), name=w.worker_id)
            for w in self.workers
        ]
        logger.debug(f"Started {len(self._tasks)} workers")
        return self._tasks

    async def wait(self) -> None:
        """Wait for every worker to see the closed work queue."""
        await asyncio.gather(*self._tasks)

    async def cancel(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)

    def info(self) -> dict:
        return {"workers": [w.info() for w in self.workers]}
