"""Error hierarchy and helpers for flattening chained exceptions."""

from __future__ import annotations


class BlastError(Exception):
    """Base class for every error raised by blast."""


class BuildError(BlastError):
    """A pipeline or task definition could not be turned into a pipeline."""


class NestingError(BlastError):
    """A pipeline was found inside another pipeline."""

    def __init__(self, parent: str, child: str):
        self.parent = parent
        self.child = child
        super().__init__(
            f"nested pipelines are not allowed: seems like '{parent}' is already "
            f"a parent pipeline for '{child}'"
        )


class ConfigError(BlastError):
    """The project configuration is invalid or incomplete."""


class LintError(BlastError):
    """A lint rule could not finish its analysis."""


class MaterializationError(BlastError):
    """An asset's materialization settings cannot produce a statement."""


class ExecutionError(BlastError):
    """A task instance failed while running."""


class UpstreamFailedError(ExecutionError):
    """A task instance was skipped because one of its upstreams failed."""


def unwrap_error_chain(err: BaseException) -> list[str]:
    """Return the messages of an exception chain, outermost first.

    Messages that repeat the previous one are dropped, and the
    ``": <inner message>"`` tail that wrapping errors often carry is cut off
    so every level is printed once.
    """
    messages: list[str] = []
    current: BaseException | None = err
    seen: set[int] = set()
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        messages.append(str(current) or type(current).__name__)
        current = current.__cause__

    flattened: list[str] = []
    for i, message in enumerate(messages):
        if i + 1 < len(messages):
            inner = messages[i + 1]
            if message == inner:
                continue
            if inner and message.endswith(f": {inner}"):
                message = message[: -len(inner) - 2]
        if flattened and flattened[-1] == message:
            continue
        flattened.append(message)
    return flattened


def format_error_tree(err: BaseException) -> str:
    """Render an exception chain as an indented tree."""
    return "\n".join(
        "  " * i + "└── " + message for i, message in enumerate(unwrap_error_chain(err))
    )
