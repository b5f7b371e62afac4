"""Snowflake connector."""

from __future__ import annotations
import asyncio
from typing import Any

from blast.connectors.base import Connector
from blast.query.extract import Query


class SnowflakeConnector(Connector):
    """Runs and explains queries on Snowflake."""

    def __init__(
        self,
        account: str,
        username: str,
        password: str | None = None,
        region: str | None = None,
        role: str | None = None,
        database: str | None = None,
        schema: str | None = None,
        warehouse: str | None = None,
    ):
        self.account = account
        self.username = username
        self.password = password
        self.region = region
        self.role = role
        self.database = database
        self.schema = schema
        self.warehouse = warehouse
        self._conn = None

    async def connect(self) -> None:
        try:
            import snowflake.connector
        except ImportError:
            raise ImportError("Install snowflake-connector-python: pip install blast-pipelines[snowflake]")

        account = self.account
        if self.region:
            account = f"{self.account}.{self.region}"

        kwargs = {"account": account, "user": self.username}
        for key in ("password", "role", "database", "schema", "warehouse"):
            value = getattr(self, key)
            if value:
                kwargs[key] = value

        loop = asyncio.get_event_loop()
        self._conn = await loop.run_in_executor(None, lambda: snowflake.connector.connect(**kwargs))

    async def disconnect(self) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None

    async def _execute(self, sql: str) -> list:
        if not self._conn:
            await self.connect()
        loop = asyncio.get_event_loop()

        def _run():
            # execute_string runs each statement in order, so variable
            # definitions stay visible to the query that follows them.
            cursors = self._conn.execute_string(sql)
            try:
                return cursors[-1].fetchall() if cursors else []
            finally:
                for cursor in cursors:
                    cursor.close()

        return await loop.run_in_executor(None, _run)

    async def is_valid(self, query: Query) -> bool:
        await self._execute(query.to_explain_query())
        return True

    async def run_query_without_result(self, query: Query) -> None:
        await self._execute(query.to_script())

    async def select(self, query: Query) -> list[list[Any]]:
        rows = await self._execute(query.to_script())
        return [list(row) for row in rows]
