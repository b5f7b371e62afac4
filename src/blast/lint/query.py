"""Lint rule validating every query of an asset against its backend."""

from __future__ import annotations
import asyncio
import logging
from typing import Protocol

from blast.lint.linter import Issue
from blast.pipeline.models import Asset, Pipeline
from blast.query.extract import Query

logger = logging.getLogger("blast.lint.query")

_NO_MORE_TASKS = None


class QueryValidator(Protocol):
    async def is_valid(self, query: Query) -> bool: ...


class QueryExtractor(Protocol):
    def extract_queries_from_file(self, path: str) -> list[Query]: ...


class QueryValidatorRule:
    """Validates the queries of every asset of one task type.

    Assets are spread over ``worker_count`` workers; the queries of a single
    asset are validated concurrently. A worker count of zero disables the rule.
    """

    def __init__(
        self,
        identifier: str,
        task_type: str,
        validator: QueryValidator,
        extractor: QueryExtractor,
        worker_count: int = 32,
    ):
        self.name = identifier
        self.task_type = task_type
        self.validator = validator
        self.extractor = extractor
        self.worker_count = worker_count

    async def _validate_task(self, task: Asset) -> list[Issue]:
        path = task.executable_file.path
        try:
            queries = self.extractor.extract_queries_from_file(path)
        except Exception as e:
            return [Issue(task, f"Cannot read executable file '{path}': {e}")]

        if not queries:
            return [Issue(task, f"No queries found in executable file '{path}'")]

        issues: list[Issue] = []
        lock = asyncio.Lock()

        async def check(query: Query) -> None:
            try:
                valid = await self.validator.is_valid(query)
            except Exception as e:
                async with lock:
                    issues.append(Issue(task, f"Invalid query found at '{query}': {e}"))
                return
            if not valid:
                async with lock:
                    issues.append(Issue(task, f"Query '{query}' is invalid"))

        await asyncio.gather(*(check(q) for q in queries))
        return issues

    async def _worker(self, tasks: asyncio.Queue, results: asyncio.Queue) -> None:
        while True:
            task = await tasks.get()
            if task is _NO_MORE_TASKS:
                tasks.put_nowait(_NO_MORE_TASKS)
                return
            await results.put(await self._validate_task(task))

    async def validate(self, pipeline: Pipeline) -> list[Issue]:
        if self.worker_count <= 0:
            return []

        tasks: asyncio.Queue = asyncio.Queue()
        results: asyncio.Queue = asyncio.Queue()

        dispatched = 0
        for task in pipeline.tasks:
            if task.type != self.task_type:
                continue
            tasks.put_nowait(task)
            dispatched += 1
        tasks.put_nowait(_NO_MORE_TASKS)

        workers = [
            asyncio.create_task(self._worker(tasks, results))
            for _ in range(min(self.worker_count, max(dispatched, 1)))
        ]
        logger.debug(f"Validating {dispatched} '{self.task_type}' tasks with {len(workers)} workers")

        issues: list[Issue] = []
        try:
            for _ in range(dispatched):
                issues.extend(await results.get())
        finally:
            for worker in workers:
                worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
        return issues
