"""BigQuery operators: run an asset's query and check its columns."""

from __future__ import annotations
import json
import logging
from typing import Any, Callable, Protocol

from blast.connections.manager import ConnectionManager
from blast.core.errors import ExecutionError
from blast.materializations.engine import Materializer
from blast.pipeline.models import Asset
from blast.query.extract import Query
from blast.scheduler.instance import AnyTaskInstance, ColumnTestInstance

logger = logging.getLogger("blast.operators.bigquery")

CONNECTION_ROLE = "google_cloud_platform"
DEFAULT_CONNECTION_NAME = "gcp-default"


class QueryExtractor(Protocol):
    def extract_queries_from_file(self, path: str) -> list[Query]: ...


def connection_name_for(asset: Asset, role: str = CONNECTION_ROLE, default: str = DEFAULT_CONNECTION_NAME) -> str:
    """The connection an asset runs on: its own, then the pipeline default."""
    if asset.connection:
        return asset.connection
    if role in asset.connections:
        return asset.connections[role]
    if asset.pipeline is not None and role in asset.pipeline.default_connections:
        return asset.pipeline.default_connections[role]
    return default


class BasicOperator:
    """Extracts, materializes and runs the query of a ``bq.sql`` asset."""

    def __init__(self, connections: ConnectionManager, extractor: QueryExtractor, materializer: Materializer):
        self.connections = connections
        self.extractor = extractor
        self.materializer = materializer

    async def run(self, instance: AnyTaskInstance) -> None:
        asset = instance.asset
        queries = self.extractor.extract_queries_from_file(asset.executable_file.path)
        if not queries:
            logger.debug(f"No query found for '{asset.name}', nothing to run")
            return
        if len(queries) > 1:
            raise ExecutionError(
                f"expected a single script for '{asset.name}', found {len(queries)} queries"
            )

        query = queries[0]
        materialized = self.materializer.render(asset, query.query)
        client = self.connections.get_bq_connection(connection_name_for(asset))
        await client.run_query_without_result(
            Query(query=materialized, variable_definitions=query.variable_definitions)
        )


# ─── Column checks ───


def ensure_count_zero(check_name: str, rows: list[list[Any]]) -> int:
    if len(rows) != 1 or len(rows[0]) != 1:
        raise ExecutionError(f"unexpected result from query during {check_name} check")
    count = rows[0][0]
    if isinstance(count, bool) or not isinstance(count, int):
        raise ExecutionError(
            f"unexpected result from query during {check_name} check, cannot cast result to integer"
        )
    return count


class CountZeroCheck:
    """Runs a count query and fails if the count is not zero."""

    def __init__(
        self,
        connections: ConnectionManager,
        check_name: str,
        build_query: Callable[[ColumnTestInstance], str],
        describe_failure: Callable[[ColumnTestInstance, int], str],
    ):
        self.connections = connections
        self.check_name = check_name
        self.build_query = build_query
        self.describe_failure = describe_failure

    async def check(self, instance: ColumnTestInstance) -> None:
        client = self.connections.get_bq_connection(connection_name_for(instance.asset))
        query = Query(query=self.build_query(instance))
        try:
            rows = await client.select(query)
        except Exception as e:
            raise ExecutionError(f"failed '{self.check_name}' check: {e}") from e

        count = ensure_count_zero(self.check_name, rows)
        if count != 0:
            raise ExecutionError(self.describe_failure(instance, count))


def not_null_query(ti: ColumnTestInstance) -> str:
    return f"SELECT count(*) FROM `{ti.asset.name}` WHERE `{ti.column.name}` IS NULL"


def positive_query(ti: ColumnTestInstance) -> str:
    return f"SELECT count(*) FROM `{ti.asset.name}` WHERE `{ti.column.name}` <= 0"


def unique_query(ti: ColumnTestInstance) -> str:
    col = ti.column.name
    return f"SELECT COUNT(`{col}`) - COUNT(DISTINCT `{col}`) FROM `{ti.asset.name}`"


def accepted_values_query(ti: ColumnTestInstance) -> str:
    values = ti.test.value
    if not isinstance(values, list):
        raise ExecutionError(
            f"unexpected value for accepted_values check, the values must be a list, "
            f"got {type(values).__name__}"
        )
    if not values:
        raise ExecutionError("no values provided for accepted_values check")

    literals = json.dumps([str(v) for v in values])[1:-1]
    return (
        f"SELECT COUNT(*) FROM `{ti.asset.name}` "
        f"WHERE CAST(`{ti.column.name}` as STRING) NOT IN ({literals})"
    )


class ColumnCheckOperator:
    """Runs the column tests declared on BigQuery assets."""

    def __init__(self, connections: ConnectionManager):
        self.checks = {
            "not_null": CountZeroCheck(
                connections, "not_null", not_null_query,
                lambda ti, n: f"column `{ti.column.name}` has {n} null values",
            ),
            "positive": CountZeroCheck(
                connections, "positive", positive_query,
                lambda ti, n: f"column `{ti.column.name}` has {n} non-positive values",
            ),
            "unique": CountZeroCheck(
                connections, "unique", unique_query,
                lambda ti, n: f"column `{ti.column.name}` has {n} non-unique values",
            ),
            "accepted_values": CountZeroCheck(
                connections, "accepted_values", accepted_values_query,
                lambda ti, n: f"column `{ti.column.name}` has {n} rows that are not in the accepted values",
            ),
        }

    async def run(self, instance: AnyTaskInstance) -> None:
        if not isinstance(instance, ColumnTestInstance):
            raise ExecutionError(f"'{instance.name}' is not a column test")

        check = self.checks.get(instance.test.name)
        if check is None:
            raise ExecutionError(f"there is no column check named '{instance.test.name}'")
        await check.check(instance)
