"""Resolves connection names to connector instances."""

from __future__ import annotations
import logging
from typing import Callable

from blast.connections.config import BigQueryConnection, Environment, SnowflakeConnection
from blast.connectors.base import Connector
from blast.connectors.bigquery import BigQueryConnector
from blast.connectors.snowflake import SnowflakeConnector
from blast.core.errors import ConfigError

logger = logging.getLogger("blast.connections")


def _bigquery(conn: BigQueryConnection) -> BigQueryConnector:
    return BigQueryConnector(
        project_id=conn.project_id,
        service_account_json=conn.service_account_json,
        service_account_file=conn.service_account_file,
        location=conn.location,
    )


def _snowflake(conn: SnowflakeConnection) -> SnowflakeConnector:
    return SnowflakeConnector(
        account=conn.account,
        username=conn.username,
        password=conn.password,
        region=conn.region,
        role=conn.role,
        database=conn.database,
        schema=conn.schema_,
        warehouse=conn.warehouse,
    )


class ConnectionManager:
    """Holds one connector per configured connection name.

    Connectors are created up front but only connect on first use.
    """

    FACTORIES: dict[str, Callable] = {
        "bigquery": _bigquery,
        "snowflake": _snowflake,
    }

    def __init__(self, connections: dict[str, Connector] | None = None):
        self._connections: dict[str, Connector] = dict(connections or {})

    @classmethod
    def from_environment(cls, environment: Environment) -> "ConnectionManager":
        connections = {}
        for name, definition in environment.connections.items():
            factory = cls.FACTORIES.get(definition.type)
            if factory is None:
                raise ConfigError(f"unsupported connection type '{definition.type}' for connection '{name}'")
            connections[name] = factory(definition)
            logger.debug(f"Registered {definition.type} connection '{name}'")
        return cls(connections)

    def get_connection(self, name: str) -> Connector:
        if name not in self._connections:
            raise ConfigError(f"connection '{name}' is not configured")
        return self._connections[name]

    def get_bq_connection(self, name: str) -> BigQueryConnector:
        conn = self.get_connection(name)
        if not isinstance(conn, BigQueryConnector):
            raise ConfigError(f"connection '{name}' is not a BigQuery connection")
        return conn

    def get_sf_connection(self, name: str) -> SnowflakeConnector:
        conn = self.get_connection(name)
        if not isinstance(conn, SnowflakeConnector):
            raise ConfigError(f"connection '{name}' is not a Snowflake connection")
        return conn

    def names_of_type(self, connector_type: type) -> list[str]:
        return [name for name, conn in self._connections.items() if isinstance(conn, connector_type)]

    async def close_all(self) -> None:
        for conn in self._connections.values():
            await conn.disconnect()
