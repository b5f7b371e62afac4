"""Tests for the sequential executor and the concurrent worker pool."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from blast.core.errors import ExecutionError
from blast.executor.concurrent import Concurrent
from blast.executor.operator import DEFAULT_TASK_TYPES, NoOpOperator, default_executors
from blast.executor.sequential import Sequential
from blast.pipeline.models import Column, ColumnTest
from blast.scheduler.instance import AssetInstance, TaskInstanceStatus, TaskInstanceType
from blast.scheduler.scheduler import Scheduler
from conftest import make_pipeline


class RecordingOperator:
    def __init__(self, fail: set[str] = frozenset(), delay: float = 0):
        self.fail = fail
        self.delay = delay
        self.ran: list[str] = []

    async def run(self, instance):
        self.ran.append(instance.name)
        if self.delay:
            await asyncio.sleep(self.delay)
        if instance.name in self.fail:
            raise RuntimeError(f"{instance.name} exploded")


class TestDefaultExecutors:
    def test_every_type_has_a_noop(self):
        executors = default_executors()
        for instance_type in (TaskInstanceType.MAIN, TaskInstanceType.COLUMN_CHECK):
            assert set(executors[instance_type]) == set(DEFAULT_TASK_TYPES)
            assert all(isinstance(op, NoOpOperator) for op in executors[instance_type].values())


class TestSequential:
    @pytest.mark.asyncio
    async def test_dispatches_by_instance_and_asset_type(self):
        pipeline = make_pipeline(("a", "bq.sql", []))
        main_op = MagicMock()
        main_op.run = AsyncMock()
        executor = Sequential({TaskInstanceType.MAIN: {"bq.sql": main_op}})

        instance = AssetInstance(pipeline=pipeline, asset=pipeline.tasks[0])
        await executor.run_single_task(instance)
        main_op.run.assert_awaited_once_with(instance)

    @pytest.mark.asyncio
    async def test_missing_operator(self):
        pipeline = make_pipeline(("a", "spark.job", []))
        executor = Sequential(default_executors())
        with pytest.raises(ExecutionError, match="no executor configured for the task type.*spark.job"):
            await executor.run_single_task(AssetInstance(pipeline=pipeline, asset=pipeline.tasks[0]))


class TestConcurrent:
    def test_requires_a_worker(self):
        with pytest.raises(ValueError):
            Concurrent(default_executors(), worker_count=0)

    async def _run(self, pipeline, operator, workers=4):
        scheduler = Scheduler(pipeline)
        executors = default_executors()
        executors[TaskInstanceType.MAIN]["bq.sql"] = operator
        executors[TaskInstanceType.COLUMN_CHECK]["bq.sql"] = operator

        executor = Concurrent(executors, worker_count=workers)
        executor.start(scheduler.work_queue, scheduler.results)
        results = await scheduler.run()
        await asyncio.wait_for(executor.wait(), timeout=5)
        return scheduler, executor, results

    @pytest.mark.asyncio
    async def test_runs_pipeline_in_dependency_order(self):
        operator = RecordingOperator()
        pipeline = make_pipeline(("a", "bq.sql", []), ("b", "bq.sql", ["a"]), ("c", "bq.sql", ["b"]))
        scheduler, executor, results = await self._run(pipeline, operator)

        assert operator.ran == ["a", "b", "c"]
        assert len(results) == 3
        assert all(r.succeeded for r in results)
        assert sum(w.completed for w in executor.workers) == 3

    @pytest.mark.asyncio
    async def test_independent_tasks_run_concurrently(self):
        operator = RecordingOperator(delay=0.2)
        pipeline = make_pipeline(*[(f"t{i}", "bq.sql", []) for i in range(4)])

        loop = asyncio.get_event_loop()
        start = loop.time()
        _, _, results = await self._run(pipeline, operator, workers=4)
        assert len(results) == 4
        assert loop.time() - start < 0.7

    @pytest.mark.asyncio
    async def test_failure_propagates_downstream(self):
        operator = RecordingOperator(fail={"c"})
        pipeline = make_pipeline(
            ("a", "bq.sql", []), ("b", "bq.sql", ["a"]), ("c", "bq.sql", ["a"]), ("d", "bq.sql", ["b", "c"]),
        )
        scheduler, _, results = await self._run(pipeline, operator, workers=2)

        assert "d" not in operator.ran
        assert len(results) == 4
        failed = {r.instance.name: str(r.error) for r in results if not r.succeeded}
        assert failed["c"] == "c exploded"
        assert "d" in failed
        assert all(i.completed() for i in scheduler.task_instances)

    @pytest.mark.asyncio
    async def test_column_checks_run_after_asset(self):
        operator = RecordingOperator()
        pipeline = make_pipeline(("a", "bq.sql", []))
        pipeline.tasks[0].columns = {"id": Column(name="id", tests=[ColumnTest("not_null")])}

        _, _, results = await self._run(pipeline, operator)
        assert operator.ran == ["a", "a:id:not_null"]
        assert len(results) == 2

    @pytest.mark.asyncio
    async def test_skipped_tasks_are_not_run(self):
        operator = RecordingOperator()
        pipeline = make_pipeline(("a", "bq.sql", []), ("b", "bq.sql", ["a"]), ("c", "bq.sql", ["b"]))
        scheduler = Scheduler(pipeline)
        scheduler.mark_all(TaskInstanceStatus.SUCCEEDED)
        scheduler.mark_asset(pipeline.tasks[1], TaskInstanceStatus.PENDING, downstream=True)

        executors = default_executors()
        executors[TaskInstanceType.MAIN]["bq.sql"] = operator
        executor = Concurrent(executors, worker_count=2)
        executor.start(scheduler.work_queue, scheduler.results)
        await scheduler.run()
        await executor.wait()

        assert operator.ran == ["b", "c"]

    @pytest.mark.asyncio
    async def test_instances_are_running_while_executed(self):
        seen = {}

        class StatusOperator:
            async def run(self, instance):
                seen[instance.name] = instance.status

        pipeline = make_pipeline(("a", "bq.sql", []), ("b", "bq.sql", ["a"]))
        pipeline.tasks[0].columns = {"id": Column(name="id", tests=[ColumnTest("not_null")])}
        scheduler, _, _ = await self._run(pipeline, StatusOperator())

        assert seen == {
            "a": TaskInstanceStatus.RUNNING,
            "a:id:not_null": TaskInstanceStatus.RUNNING,
            "b": TaskInstanceStatus.RUNNING,
        }
        assert all(i.status == TaskInstanceStatus.SUCCEEDED for i in scheduler.task_instances)

    @pytest.mark.asyncio
    async def test_info(self):
        executor = Concurrent(default_executors(), worker_count=2)
        info = executor.info()
        assert [w["worker_id"] for w in info["workers"]] == ["worker-0", "worker-1"]
        assert all(w["status"] == "idle" for w in info["workers"])
