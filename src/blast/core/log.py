"""Console logging for the blast CLI."""

from __future__ import annotations

import logging
import threading

from rich.console import Console
from rich.logging import RichHandler

_lock = threading.Lock()
_configured = False


def setup_logging(debug: bool = False, level: str = "INFO") -> None:
    """Attach a rich handler writing to stderr to the ``blast`` logger.

    Safe to call more than once; only the first call installs the handler,
    later calls only adjust the level.
    """
    global _configured

    log_level = logging.DEBUG if debug else getattr(logging, level.upper(), logging.INFO)
    logger = logging.getLogger("blast")

    with _lock:
        logger.setLevel(log_level)
        if _configured:
            return

        handler = RichHandler(
            console=Console(stderr=True),
            show_path=debug,
            rich_tracebacks=debug,
            markup=False,
        )
        handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
        logger.addHandler(handler)
        logger.propagate = False
        _configured = True
