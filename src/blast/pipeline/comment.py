"""Task definitions embedded in the comments of SQL and Python files.

    -- @blast.name: orders
    -- @blast.type: bq.sql
    -- @blast.depends: customers, raw.orders
"""

from __future__ import annotations
import logging
import os
from typing import Callable

from blast.core.errors import BuildError
from blast.core.fs import FileSystem
from blast.materializations.strategies import Materialization
from blast.pipeline.models import Asset, DefinitionFile, DefinitionType, ExecutableFile

logger = logging.getLogger("blast.pipeline.comment")

CONFIG_MARKER = "@blast."

COMMENT_MARKERS = {
    ".sql": "--",
    ".py": "#",
}

TaskCreator = Callable[[str], "Asset | None"]


def _split_list(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def parse_comment_rows(content: str, comment_marker: str) -> list[tuple[str, str]]:
    """Return the ``(key, value)`` pairs of every config-marker comment line."""
    rows = []
    for line in content.splitlines():
        if not line.startswith(comment_marker):
            continue
        comment = line[len(comment_marker):].strip()
        if not comment.startswith(CONFIG_MARKER):
            continue

        key, sep, value = comment[len(CONFIG_MARKER):].partition(":")
        if not sep:
            continue
        rows.append((key.strip(), value.strip()))
    return rows


def _apply_row(asset: Asset, materialization: dict, key: str, value: str) -> None:
    if key == "name":
        asset.name = value
    elif key == "description":
        asset.description = value
    elif key == "type":
        asset.type = value
    elif key == "connection":
        asset.connection = value
    elif key == "depends":
        asset.depends_on.extend(_split_list(value))
    elif key.startswith("parameters."):
        name = key[len("parameters."):]
        if name and "." not in name:
            asset.parameters[name] = value
    elif key.startswith("connections."):
        name = key[len("connections."):]
        if name and "." not in name:
            asset.connections[name] = value
    elif key.startswith("materialization."):
        field_name = key[len("materialization."):]
        if field_name == "cluster_by":
            materialization[field_name] = _split_list(value)
        elif field_name in ("type", "strategy", "partition_by", "incremental_key"):
            materialization[field_name] = value
    else:
        logger.debug(f"Ignoring unknown task key '{key}'")


def create_task_from_file_comments(fs: FileSystem | None = None) -> TaskCreator:
    """Build a task creator reading metadata from source-file comments.

    The creator returns None for files whose extension has no comment marker
    and for files without any config-marker line.
    """
    fs = fs or FileSystem()

    def creator(file_path: str) -> Asset | None:
        comment_marker = COMMENT_MARKERS.get(os.path.splitext(file_path)[1])
        if comment_marker is None:
            return None

        abs_path = os.path.abspath(file_path)
        try:
            content = fs.read_text(abs_path)
        except OSError as e:
            raise BuildError(f"failed to read file {abs_path}") from e

        rows = parse_comment_rows(content, comment_marker)
        if not rows:
            return None

        asset = Asset(
            executable_file=ExecutableFile(
                name=os.path.basename(abs_path),
                path=abs_path,
                content=content,
            ),
            definition_file=DefinitionFile(
                name=os.path.basename(abs_path),
                path=abs_path,
                type=DefinitionType.COMMENT,
            ),
        )

        materialization: dict = {}
        for key, value in rows:
            _apply_row(asset, materialization, key, value)

        if materialization:
            try:
                asset.materialization = Materialization.parse(**materialization)
            except ValueError as e:
                raise BuildError(f"invalid materialization in {abs_path}: {e}") from e

        return asset

    return creator
