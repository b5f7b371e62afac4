"""Named warehouse connections configured per environment."""

from blast.connections.config import Config, Environment, load_or_create
from blast.connections.manager import ConnectionManager

__all__ = ["Config", "ConnectionManager", "Environment", "load_or_create"]
