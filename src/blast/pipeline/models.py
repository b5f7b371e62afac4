"""In-memory pipeline graph: pipelines, assets, columns and column tests."""

from __future__ import annotations
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from blast.materializations.strategies import Materialization


class DefinitionType(str, Enum):
    STRUCTURED = "yaml"       # task.yml next to the executable
    COMMENT = "comment"       # metadata embedded in the executable's comments


@dataclass
class ExecutableFile:
    name: str = ""
    path: str = ""
    content: str = ""


@dataclass
class DefinitionFile:
    name: str = ""
    path: str = ""
    type: DefinitionType = DefinitionType.COMMENT


@dataclass
class TaskSchedule:
    days: list[str] = field(default_factory=list)


@dataclass
class ColumnTest:
    """A named assertion on a column, e.g. ``not_null`` or ``accepted_values``."""
    name: str
    value: Any = None


@dataclass
class Column:
    name: str
    type: str = ""
    description: str = ""
    tests: list[ColumnTest] = field(default_factory=list)


@dataclass(eq=False)
class Asset:
    """A single unit of work in a pipeline.

    ``depends_on`` is the declared edge list; ``upstream`` and ``downstream``
    are filled in by the builder once every asset of the pipeline is known.
    Assets compare by identity since they reference each other.
    """
    name: str = ""
    type: str = ""
    description: str = ""
    executable_file: ExecutableFile = field(default_factory=ExecutableFile)
    definition_file: DefinitionFile = field(default_factory=DefinitionFile)
    parameters: dict[str, str] = field(default_factory=dict)
    connections: dict[str, str] = field(default_factory=dict)
    connection: str = ""
    depends_on: list[str] = field(default_factory=list)
    materialization: Materialization = field(default_factory=Materialization)
    columns: dict[str, Column] = field(default_factory=dict)
    schedule: TaskSchedule = field(default_factory=TaskSchedule)

    upstream: list[Asset] = field(default_factory=list, repr=False)
    downstream: list[Asset] = field(default_factory=list, repr=False)
    pipeline: Pipeline | None = field(default=None, repr=False)

    def add_upstream(self, other: Asset) -> None:
        """Record ``other`` as an upstream, keeping both sides in sync."""
        if other not in self.upstream:
            self.upstream.append(other)
        if self not in other.downstream:
            other.downstream.append(self)

    @property
    def is_comment_task(self) -> bool:
        return self.definition_file.type == DefinitionType.COMMENT

    def column_tests(self) -> list[tuple[Column, ColumnTest]]:
        return [(col, test) for col in self.columns.values() for test in col.tests]


@dataclass(eq=False)
class Pipeline:
    """A named DAG of assets sharing defaults and a schedule."""
    name: str = ""
    schedule: str = ""
    start_date: str = ""
    definition_file: DefinitionFile = field(default_factory=DefinitionFile)
    default_parameters: dict[str, str] = field(default_factory=dict)
    default_connections: dict[str, str] = field(default_factory=dict)
    notifications: dict[str, Any] = field(default_factory=dict)
    tasks: list[Asset] = field(default_factory=list)
    tasks_by_type: dict[str, list[Asset]] = field(default_factory=dict, repr=False)
    _tasks_by_name: dict[str, Asset] = field(default_factory=dict, init=False, repr=False)

    def add_task(self, asset: Asset) -> None:
        asset.pipeline = self
        self.tasks.append(asset)
        self.tasks_by_type.setdefault(asset.type, []).append(asset)
        # First definition wins; duplicates are reported by the linter.
        self._tasks_by_name.setdefault(asset.name, asset)

    def get_asset_by_name(self, name: str) -> Asset | None:
        return self._tasks_by_name.get(name)

    def resolve_dependencies(self) -> None:
        """Wire upstream/downstream edges from every asset's ``depends_on``.

        Names that do not resolve are left alone for the linter to report.
        """
        for asset in self.tasks:
            for dep in asset.depends_on:
                upstream = self.get_asset_by_name(dep)
                if upstream is not None:
                    asset.add_upstream(upstream)

    def relative_task_path(self, asset: Asset) -> str:
        root = os.path.dirname(self.definition_file.path)
        try:
            return os.path.relpath(asset.definition_file.path, root)
        except ValueError:
            # Different drives on Windows.
            return asset.definition_file.path
