"""Pipeline data model and the loaders that build it from disk."""

from blast.pipeline.models import (
    Asset,
    Column,
    ColumnTest,
    DefinitionFile,
    DefinitionType,
    ExecutableFile,
    Pipeline,
)
from blast.pipeline.builder import Builder, BuilderConfig
from blast.pipeline.comment import create_task_from_file_comments
from blast.pipeline.definition import create_task_from_yaml_definition

__all__ = [
    "Asset",
    "Column",
    "ColumnTest",
    "DefinitionFile",
    "DefinitionType",
    "ExecutableFile",
    "Pipeline",
    "Builder",
    "BuilderConfig",
    "create_task_from_file_comments",
    "create_task_from_yaml_definition",
    "new_builder",
]


def new_builder(config: BuilderConfig | None = None, fs=None) -> Builder:
    """Builder wired with the default structured and comment loaders."""
    from blast.core.fs import CachedFileSystem

    fs = fs or CachedFileSystem()
    return Builder(
        config or BuilderConfig(),
        create_task_from_yaml_definition(fs),
        create_task_from_file_comments(fs),
        fs,
    )
