"""Structured (YAML) definitions for pipelines and tasks."""

from __future__ import annotations
import os
from datetime import date
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from blast.core.errors import BuildError
from blast.core.fs import FileSystem
from blast.materializations.strategies import Materialization
from blast.pipeline.comment import TaskCreator
from blast.pipeline.models import (
    Asset,
    Column,
    ColumnTest,
    DefinitionFile,
    DefinitionType,
    ExecutableFile,
    TaskSchedule,
)


def load_yaml(content: str, path: str) -> dict:
    """Parse a YAML mapping, raising BuildError for anything else."""
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise BuildError(f"invalid YAML in '{path}'") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise BuildError(f"'{path}' must contain a mapping at the top level")
    return data


def _validation_message(err: ValidationError) -> str:
    parts = []
    for item in err.errors():
        location = ".".join(str(p) for p in item["loc"]) or "<root>"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)


# ─── Task definition ───


class ColumnTestDefinition(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    value: Union[List[int], List[str], int, float, str, None] = None


class ColumnDefinition(BaseModel):
    model_config = ConfigDict(extra="forbid", coerce_numbers_to_str=True)

    type: str = ""
    description: str = ""
    checks: List[ColumnTestDefinition] = Field(
        default_factory=list,
        validation_alias=AliasChoices("checks", "tests"),
    )


class MaterializationDefinition(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: str = ""
    strategy: str = ""
    partition_by: str = ""
    cluster_by: List[str] = Field(default_factory=list)
    incremental_key: str = ""


class ScheduleDefinition(BaseModel):
    model_config = ConfigDict(extra="forbid")

    days: List[str] = Field(default_factory=list)


class TaskDefinition(BaseModel):
    """Schema of a ``task.yml`` file. Unknown fields are rejected."""

    model_config = ConfigDict(extra="forbid", coerce_numbers_to_str=True)

    name: str = ""
    description: str = ""
    type: str = ""
    run: str = ""
    depends: List[str] = Field(default_factory=list)
    parameters: Dict[str, str] = Field(default_factory=dict)
    connections: Dict[str, str] = Field(default_factory=dict)
    connection: str = ""
    schedule: ScheduleDefinition = Field(default_factory=ScheduleDefinition)
    materialization: MaterializationDefinition = Field(default_factory=MaterializationDefinition)
    columns: Dict[str, ColumnDefinition] = Field(default_factory=dict)

    @classmethod
    def from_yaml(cls, content: str, path: str) -> "TaskDefinition":
        data = load_yaml(content, path)
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise BuildError(f"invalid task definition '{path}': {_validation_message(e)}") from e

    def to_asset(self) -> Asset:
        try:
            materialization = Materialization.parse(**self.materialization.model_dump())
        except ValueError as e:
            raise BuildError(str(e)) from e

        columns = {
            name: Column(
                name=name,
                type=col.type,
                description=col.description,
                tests=[ColumnTest(name=check.name, value=check.value) for check in col.checks],
            )
            for name, col in self.columns.items()
        }

        return Asset(
            name=self.name,
            type=self.type,
            description=self.description,
            parameters=dict(self.parameters),
            connections=dict(self.connections),
            connection=self.connection,
            depends_on=list(self.depends),
            materialization=materialization,
            columns=columns,
            schedule=TaskSchedule(days=list(self.schedule.days)),
        )


def create_task_from_yaml_definition(fs: FileSystem | None = None) -> TaskCreator:
    """Build a task creator for ``task.yml`` definitions.

    The ``run`` file is resolved relative to the definition and read eagerly.
    """
    fs = fs or FileSystem()

    def creator(file_path: str) -> Asset:
        abs_path = os.path.abspath(file_path)
        try:
            content = fs.read_text(abs_path)
        except OSError as e:
            raise BuildError(f"failed to read task definition '{abs_path}'") from e

        definition = TaskDefinition.from_yaml(content, abs_path)
        asset = definition.to_asset()

        if definition.run:
            run_path = os.path.abspath(os.path.join(os.path.dirname(abs_path), definition.run))
            try:
                run_content = fs.read_text(run_path)
            except OSError as e:
                raise BuildError(f"unable to read the run file '{run_path}'") from e

            asset.executable_file = ExecutableFile(
                name=os.path.basename(definition.run),
                path=run_path,
                content=run_content,
            )

        asset.definition_file = DefinitionFile(
            name=os.path.basename(abs_path),
            path=abs_path,
            type=DefinitionType.STRUCTURED,
        )
        return asset

    return creator


# ─── Pipeline definition ───


class PipelineDefinition(BaseModel):
    """Schema of a ``pipeline.yml`` file."""

    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    name: str = ""
    legacy_id: str = Field(default="", alias="id")
    schedule: str
    start_date: str = ""
    default_parameters: Dict[str, str] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("default_parameters", "defaultParameters"),
    )
    default_connections: Dict[str, str] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("default_connections", "defaultConnections"),
    )
    notifications: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("start_date", mode="before")
    @classmethod
    def _date_to_string(cls, value: Any) -> Any:
        if isinstance(value, date):
            return value.isoformat()
        return value

    @field_validator("schedule", "start_date", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Optional[Any]) -> Any:
        return "" if value is None else value

    @model_validator(mode="after")
    def _require_name(self) -> "PipelineDefinition":
        # Older pipelines only carry an `id`.
        if not self.name:
            self.name = self.legacy_id
        if not self.name:
            raise ValueError("pipeline `name` is required")
        return self

    @classmethod
    def from_yaml(cls, content: str, path: str) -> "PipelineDefinition":
        data = load_yaml(content, path)
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise BuildError(f"invalid pipeline definition '{path}': {_validation_message(e)}") from e
