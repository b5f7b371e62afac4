"""Locating pipelines and task files on disk."""

from __future__ import annotations
import os
from pathlib import Path

from blast.core.errors import BuildError


def _walk_files(root: str | Path):
    """Yield absolute file paths below ``root`` in lexical order."""
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        for filename in sorted(filenames):
            yield os.path.abspath(os.path.join(dirpath, filename))


def get_all_files_recursive(root: str | Path, suffixes: list[str] | None = None) -> list[str]:
    """All files below ``root`` whose name ends with one of ``suffixes``."""
    if not os.path.isdir(root):
        raise BuildError(f"path '{root}' is not a directory")

    return [
        path for path in _walk_files(root)
        if suffixes is None or any(path.endswith(s) for s in suffixes)
    ]


def get_pipeline_paths(root: str | Path, pipeline_file_name: str) -> list[str]:
    """Directories below ``root`` that hold a pipeline definition file."""
    return [
        os.path.dirname(path) for path in _walk_files(root)
        if os.path.basename(path) == pipeline_file_name
    ]


def get_pipeline_root_from_task(task_path: str | Path, pipeline_file_name: str) -> str:
    """Walk up from a task file until a directory with a pipeline file is found."""
    current = Path(task_path).resolve()
    if current.is_file():
        current = current.parent

    for directory in (current, *current.parents):
        if (directory / pipeline_file_name).is_file():
            return str(directory)

    raise BuildError(
        f"cannot find a '{pipeline_file_name}' file in any parent directory of '{task_path}'"
    )
