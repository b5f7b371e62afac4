"""Runtime task instances: one per asset, one per column test."""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol, Union

from blast.pipeline.models import Asset, Column, ColumnTest, Pipeline


class TaskInstanceStatus(str, Enum):
    PENDING = "pending"
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    UPSTREAM_FAILED = "upstream_failed"


TERMINAL_STATUSES = frozenset({
    TaskInstanceStatus.SUCCEEDED,
    TaskInstanceStatus.FAILED,
    TaskInstanceStatus.UPSTREAM_FAILED,
})


class TaskInstanceType(str, Enum):
    MAIN = "main"
    COLUMN_CHECK = "column_check"


class TaskInstance(Protocol):
    """What the scheduler and executors need from an instance."""

    pipeline: Pipeline
    status: TaskInstanceStatus
    upstream: list["AnyTaskInstance"]
    downstream: list["AnyTaskInstance"]

    @property
    def asset(self) -> Asset: ...

    @property
    def type(self) -> TaskInstanceType: ...

    @property
    def name(self) -> str: ...

    def mark_as(self, status: TaskInstanceStatus) -> None: ...

    def completed(self) -> bool: ...


@dataclass(eq=False)
class AssetInstance:
    pipeline: Pipeline
    asset: Asset
    status: TaskInstanceStatus = TaskInstanceStatus.PENDING
    upstream: list = field(default_factory=list, repr=False)
    downstream: list = field(default_factory=list, repr=False)

    @property
    def type(self) -> TaskInstanceType:
        return TaskInstanceType.MAIN

    @property
    def name(self) -> str:
        return self.asset.name

    def mark_as(self, status: TaskInstanceStatus) -> None:
        self.status = status

    def completed(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def add_upstream(self, instance: AnyTaskInstance) -> None:
        self.upstream.append(instance)

    def add_downstream(self, instance: AnyTaskInstance) -> None:
        self.downstream.append(instance)


@dataclass(eq=False)
class ColumnTestInstance:
    """A column test, run after the asset that owns the column."""
    parent: AssetInstance
    column: Column
    test: ColumnTest
    status: TaskInstanceStatus = TaskInstanceStatus.PENDING
    upstream: list = field(default_factory=list, repr=False)
    downstream: list = field(default_factory=list, repr=False)

    @property
    def pipeline(self) -> Pipeline:
        return self.parent.pipeline

    @property
    def asset(self) -> Asset:
        return self.parent.asset

    @property
    def type(self) -> TaskInstanceType:
        return TaskInstanceType.COLUMN_CHECK

    @property
    def name(self) -> str:
        return f"{self.parent.name}:{self.column.name}:{self.test.name}"

    def mark_as(self, status: TaskInstanceStatus) -> None:
        self.status = status

    def completed(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def add_upstream(self, instance: AnyTaskInstance) -> None:
        self.upstream.append(instance)

    def add_downstream(self, instance: AnyTaskInstance) -> None:
        self.downstream.append(instance)


AnyTaskInstance = Union[AssetInstance, ColumnTestInstance]
