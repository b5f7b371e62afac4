"""Base connector interface."""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any

from blast.query.extract import Query


class Connector(ABC):
    """Base class for the warehouses blast runs queries on."""

    @abstractmethod
    async def connect(self) -> None:
        """Establish connection."""
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        """Close connection."""
        ...

    @abstractmethod
    async def is_valid(self, query: Query) -> bool:
        """Check a query without running it. Raises with the backend's reason."""
        ...

    @abstractmethod
    async def run_query_without_result(self, query: Query) -> None:
        ...

    @abstractmethod
    async def select(self, query: Query) -> list[list[Any]]:
        """Run a query and return its rows."""
        ...

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, *args):
        await self.disconnect()
