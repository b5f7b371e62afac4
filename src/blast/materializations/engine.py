"""Materializer: wraps a rendered query in the DDL/DML for its asset."""

from __future__ import annotations
from typing import TYPE_CHECKING, Callable

from blast.core.errors import MaterializationError
from blast.materializations.strategies import (
    Materialization,
    MaterializationStrategy,
    MaterializationType,
)

if TYPE_CHECKING:
    from blast.pipeline.models import Asset

TEMP_TABLE = "__blast_tmp"


class Materializer:
    """Renders BigQuery statements for each (type, strategy) pair.

    A pipeline is expected to rerun, so every statement is safe to repeat:
    views and tables use CREATE OR REPLACE, and incremental loads replace
    the rows that share the incremental key.
    """

    def render(self, asset: Asset, query: str) -> str:
        mat = asset.materialization
        if mat.type == MaterializationType.NONE:
            return query

        if mat.type == MaterializationType.VIEW:
            return self._view(asset.name, mat, query)

        if mat.type == MaterializationType.TABLE:
            strategy = mat.strategy
            handler: Callable[[str, Materialization, str], str] | None = {
                MaterializationStrategy.NONE: self._create_replace,
                MaterializationStrategy.CREATE_REPLACE: self._create_replace,
                MaterializationStrategy.APPEND: self._append,
                MaterializationStrategy.DELETE_INSERT: self._delete_insert,
            }.get(strategy)
            if handler is None:
                raise MaterializationError(
                    f"unsupported materialization strategy '{strategy}' for asset '{asset.name}'"
                )
            return handler(asset.name, mat, query)

        raise MaterializationError(
            f"unsupported materialization type '{mat.type}' for asset '{asset.name}'"
        )

    # ─── View ───

    def _view(self, name: str, mat: Materialization, query: str) -> str:
        return f"CREATE OR REPLACE VIEW `{name}` AS\n{query}"

    # ─── Table ───

    def _create_replace(self, name: str, mat: Materialization, query: str) -> str:
        partition_clause = f"PARTITION BY `{mat.partition_by}`" if mat.partition_by else ""
        cluster_clause = ""
        if mat.cluster_by:
            cluster_clause = "CLUSTER BY " + ", ".join(f"`{col}`" for col in mat.cluster_by)

        return f"CREATE OR REPLACE TABLE `{name}` {partition_clause} {cluster_clause} AS\n{query}"

    def _append(self, name: str, mat: Materialization, query: str) -> str:
        return f"INSERT INTO `{name}` {query}"

    def _delete_insert(self, name: str, mat: Materialization, query: str) -> str:
        if not mat.incremental_key:
            raise MaterializationError(
                f"materialization strategy '{mat.strategy.value}' requires the "
                f"`incremental_key` field to be set for asset '{name}'"
            )

        key = mat.incremental_key
        statements = [
            "BEGIN TRANSACTION",
            f"CREATE TEMP TABLE {TEMP_TABLE} AS {query}",
            f"DELETE FROM `{name}` WHERE `{key}` in (SELECT DISTINCT `{key}` FROM {TEMP_TABLE})",
            f"INSERT INTO `{name}` SELECT * FROM {TEMP_TABLE}",
            "COMMIT TRANSACTION",
        ]
        return "\n".join(statements) + ";"
