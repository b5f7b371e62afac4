"""Blast: build, validate and run data pipelines defined on disk."""

__version__ = "0.1.0"

__all__ = ["__version__"]
