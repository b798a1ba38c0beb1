"""Root logger setup for the command line."""

from __future__ import annotations

import logging

from rich.logging import RichHandler

_HANDLER_NAME = "bitbucket-alerts"


def configure_logging(level: str | int = "INFO") -> None:
    """Attach a RichHandler to the root logger once; later calls only change the level."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger()
    root.setLevel(level)
    if any(handler.get_name() == _HANDLER_NAME for handler in root.handlers):
        return

    handler = RichHandler(rich_tracebacks=True, show_path=False)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s", datefmt="[%X]"))
    root.addHandler(handler)
    # Request logs from httpx would print every poll at INFO.
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
