"""Warehouse connectors. Backend libraries are imported on first connect."""

from blast.connectors.base import Connector

__all__ = ["Connector"]
