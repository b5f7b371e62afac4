"""Executors running task instances through their typed operators."""

from blast.executor.operator import NoOpOperator, Operator, TaskTypeMap, default_executors
from blast.executor.sequential import Sequential
from blast.executor.concurrent import Concurrent

__all__ = [
    "Concurrent",
    "NoOpOperator",
    "Operator",
    "Sequential",
    "TaskTypeMap",
    "default_executors",
]
