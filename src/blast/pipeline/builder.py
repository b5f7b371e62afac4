"""Builds a Pipeline from a directory of task definitions."""

from __future__ import annotations
import logging
import os
from dataclasses import dataclass, field

from blast.core.errors import BlastError, BuildError
from blast.core.fs import FileSystem
from blast.pipeline.comment import TaskCreator
from blast.pipeline.definition import PipelineDefinition
from blast.pipeline.models import Asset, DefinitionFile, DefinitionType, Pipeline
from blast.pipeline.paths import get_all_files_recursive

logger = logging.getLogger("blast.pipeline.builder")

SUPPORTED_FILE_SUFFIXES = [".yml", ".yaml", ".sql", ".py"]


@dataclass
class BuilderConfig:
    pipeline_file_name: str = "pipeline.yml"
    tasks_directory_names: list[str] = field(default_factory=lambda: ["tasks"])
    tasks_file_suffixes: list[str] = field(default_factory=lambda: ["task.yml", "task.yaml"])

    @classmethod
    def from_settings(cls, settings) -> "BuilderConfig":
        return cls(
            pipeline_file_name=settings.pipeline_file_name,
            tasks_directory_names=list(settings.tasks_directory_names),
            tasks_file_suffixes=list(settings.task_file_suffixes),
        )


class Builder:
    """Assembles pipelines from structured and comment task definitions.

    Usage:
        builder = Builder(
            BuilderConfig(),
            create_task_from_yaml_definition(fs),
            create_task_from_file_comments(fs),
            fs,
        )
        pipeline = builder.create_pipeline_from_path("pipelines/daily")
    """

    def __init__(
        self,
        config: BuilderConfig,
        yaml_task_creator: TaskCreator,
        comment_task_creator: TaskCreator,
        fs: FileSystem | None = None,
    ):
        self.config = config
        self.yaml_task_creator = yaml_task_creator
        self.comment_task_creator = comment_task_creator
        self.fs = fs or FileSystem()

    def create_pipeline_from_path(self, path: str) -> Pipeline:
        pipeline_root = os.path.abspath(path)
        if os.path.basename(pipeline_root) == self.config.pipeline_file_name:
            pipeline_root = os.path.dirname(pipeline_root)

        pipeline_file = os.path.join(pipeline_root, self.config.pipeline_file_name)
        try:
            content = self.fs.read_text(pipeline_file)
        except OSError as e:
            raise BuildError(f"error reading pipeline file at '{pipeline_file}'") from e

        definition = PipelineDefinition.from_yaml(content, pipeline_file)
        pipeline = Pipeline(
            name=definition.name,
            schedule=definition.schedule,
            start_date=definition.start_date,
            definition_file=DefinitionFile(
                name=os.path.basename(pipeline_file),
                path=pipeline_file,
            ),
            default_parameters=dict(definition.default_parameters),
            default_connections=dict(definition.default_connections),
            notifications=dict(definition.notifications),
        )

        assets: list[Asset] = []
        for tasks_dir in self.config.tasks_directory_names:
            tasks_path = os.path.join(pipeline_root, tasks_dir)
            if not self.fs.is_dir(tasks_path):
                continue

            for file_path in get_all_files_recursive(tasks_path, SUPPORTED_FILE_SUFFIXES):
                asset = self.create_task_from_file(file_path)
                if asset is not None:
                    assets.append(asset)

        # A run file referenced from a task.yml may carry comment metadata as
        # well; the structured definition owns it.
        structured_runs = {
            a.executable_file.path for a in assets
            if a.definition_file.type == DefinitionType.STRUCTURED and a.executable_file.path
        }
        for asset in assets:
            if asset.is_comment_task and asset.executable_file.path in structured_runs:
                logger.debug(f"Skipping {asset.executable_file.path}, already defined by a task file")
                continue
            pipeline.add_task(asset)

        pipeline.resolve_dependencies()
        logger.debug(f"Built pipeline '{pipeline.name}' with {len(pipeline.tasks)} tasks")
        return pipeline

    def _is_structured_definition(self, path: str) -> bool:
        return any(path.endswith(suffix) for suffix in self.config.tasks_file_suffixes)

    def create_task_from_file(self, path: str) -> Asset | None:
        path = os.path.abspath(path)
        is_structured = self._is_structured_definition(path)
        creator = self.yaml_task_creator if is_structured else self.comment_task_creator

        try:
            asset = creator(path)
        except (BlastError, OSError) as e:
            raise BuildError(f"error creating task from file '{path}': {e}") from e

        if asset is None:
            return None

        asset.definition_file = DefinitionFile(
            name=os.path.basename(path),
            path=path,
            type=DefinitionType.STRUCTURED if is_structured else DefinitionType.COMMENT,
        )
        return asset
