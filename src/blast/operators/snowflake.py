"""Snowflake operator: runs the queries of an ``sf.sql`` asset in order."""

from __future__ import annotations
import logging

from blast.connections.manager import ConnectionManager
from blast.core.errors import ExecutionError
from blast.materializations.strategies import MaterializationType
from blast.operators.bigquery import QueryExtractor, connection_name_for
from blast.scheduler.instance import AnyTaskInstance

logger = logging.getLogger("blast.operators.snowflake")

CONNECTION_ROLE = "snowflake"
DEFAULT_CONNECTION_NAME = "snowflake-default"


class QueryOperator:
    def __init__(self, connections: ConnectionManager, extractor: QueryExtractor):
        self.connections = connections
        self.extractor = extractor

    async def run(self, instance: AnyTaskInstance) -> None:
        asset = instance.asset
        if asset.materialization.type != MaterializationType.NONE:
            raise ExecutionError(f"materialization is not supported for Snowflake asset '{asset.name}'")

        queries = self.extractor.extract_queries_from_file(asset.executable_file.path)
        client = self.connections.get_sf_connection(
            connection_name_for(asset, CONNECTION_ROLE, DEFAULT_CONNECTION_NAME)
        )
        for i, query in enumerate(queries, start=1):
            logger.debug(f"Running query {i}/{len(queries)} of '{asset.name}'")
            await client.run_query_without_result(query)
