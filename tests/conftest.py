"""Shared test fixtures for blast tests."""

import os
from pathlib import Path

import pytest

from blast.core.fs import CachedFileSystem
from blast.pipeline import BuilderConfig, new_builder
from blast.pipeline.models import Asset, DefinitionFile, ExecutableFile, Pipeline


def write_file(path: Path, content: str, mode: int = 0o644) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    os.chmod(path, mode)
    return path


PIPELINE_YML = """\
name: daily
schedule: "0 6 * * *"
start_date: 2023-01-01
default_connections:
  google_cloud_platform: gcp-default
"""


def make_pipeline(*tasks: tuple, name: str = "daily") -> Pipeline:
    """Build an in-memory pipeline from ``(name, type, depends_on)`` tuples."""
    pipeline = Pipeline(
        name=name,
        schedule="@daily",
        definition_file=DefinitionFile(name="pipeline.yml", path="/pipelines/daily/pipeline.yml"),
    )
    for task_name, task_type, depends in tasks:
        pipeline.add_task(Asset(
            name=task_name,
            type=task_type,
            depends_on=list(depends),
            executable_file=ExecutableFile(name=f"{task_name}.sql", path=f"/pipelines/daily/tasks/{task_name}.sql"),
            definition_file=DefinitionFile(name=f"{task_name}.sql", path=f"/pipelines/daily/tasks/{task_name}.sql"),
        ))
    pipeline.resolve_dependencies()
    return pipeline


@pytest.fixture
def pipeline_dir(tmp_path):
    """A pipeline with three comment tasks forming a chain: a -> b -> c."""
    root = tmp_path / "daily"
    write_file(root / "pipeline.yml", PIPELINE_YML)
    write_file(root / "tasks" / "a.sql", "-- @blast.name: a\n-- @blast.type: bq.sql\nSELECT 1\n")
    write_file(
        root / "tasks" / "b.sql",
        "-- @blast.name: b\n-- @blast.type: bq.sql\n-- @blast.depends: a\nSELECT 2\n",
    )
    write_file(
        root / "tasks" / "nested" / "c.sql",
        "-- @blast.name: c\n-- @blast.type: bq.sql\n-- @blast.depends: b\nSELECT 3\n",
    )
    return root


@pytest.fixture
def fs():
    return CachedFileSystem()


@pytest.fixture
def builder(fs):
    return new_builder(BuilderConfig(), fs)
