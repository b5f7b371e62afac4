"""Turn SELECT queries into the statements that materialize an asset."""

from blast.materializations.strategies import (
    Materialization,
    MaterializationStrategy,
    MaterializationType,
)
from blast.materializations.engine import Materializer

__all__ = [
    "Materialization",
    "MaterializationStrategy",
    "MaterializationType",
    "Materializer",
]
