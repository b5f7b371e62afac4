"""Materialization types and strategies an asset can declare."""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum


class MaterializationType(str, Enum):
    NONE = ""          # run the query as-is
    VIEW = "view"      # CREATE OR REPLACE VIEW
    TABLE = "table"    # build a table, see MaterializationStrategy


class MaterializationStrategy(str, Enum):
    NONE = ""
    CREATE_REPLACE = "create+replace"   # CREATE OR REPLACE TABLE ... AS
    APPEND = "append"                   # INSERT INTO
    DELETE_INSERT = "delete+insert"     # replace rows sharing the incremental key


INCREMENTAL_STRATEGIES = frozenset({MaterializationStrategy.DELETE_INSERT})


@dataclass
class Materialization:
    """How an asset's query is persisted in the warehouse."""
    type: MaterializationType = MaterializationType.NONE
    strategy: MaterializationStrategy = MaterializationStrategy.NONE
    partition_by: str = ""
    cluster_by: list[str] = field(default_factory=list)
    incremental_key: str = ""

    @classmethod
    def parse(
        cls,
        type: str = "",
        strategy: str = "",
        partition_by: str = "",
        cluster_by: list[str] | None = None,
        incremental_key: str = "",
    ) -> "Materialization":
        """Build from raw definition values, case-insensitively.

        Raises ValueError for types or strategies blast does not know.
        """
        try:
            mat_type = MaterializationType((type or "").strip().lower())
        except ValueError:
            raise ValueError(f"unknown materialization type '{type}'") from None
        try:
            mat_strategy = MaterializationStrategy((strategy or "").strip().lower())
        except ValueError:
            raise ValueError(f"unknown materialization strategy '{strategy}'") from None

        return cls(
            type=mat_type,
            strategy=mat_strategy,
            partition_by=partition_by or "",
            cluster_by=list(cluster_by or []),
            incremental_key=incremental_key or "",
        )

    @property
    def is_incremental(self) -> bool:
        return self.strategy in INCREMENTAL_STRATEGIES
