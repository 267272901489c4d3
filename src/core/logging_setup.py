"""Logging setup.

Root logger goes to stderr through Rich; status lines meant for the user are
printed by `cli.ui_components` instead.
"""

from __future__ import annotations

import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

_HANDLER: logging.Handler | None = None


def setup_logging(*, verbose: bool = False) -> None:
    """Configure the root logger once; later calls only adjust the level."""

    global _HANDLER

    level = logging.DEBUG if verbose else logging.WARNING
    root = logging.getLogger()
    root.setLevel(level)
    if _HANDLER is not None:
        _HANDLER.setLevel(level)
        return

    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
        markup=False,
    )
    # INFO audit records propagate here as well.
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(name)s | %(message)s", datefmt="%H:%M:%S"))
    root.addHandler(handler)
    logging.captureWarnings(True)
    _HANDLER = handler


def attach_file_log(logger: logging.Logger, path: Path) -> logging.Handler:
    """Append `[YYYY-mm-dd HH:MM:SS] message` records for `logger` to `path`."""

    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(logging.INFO)
    handler.setFormatter(logging.Formatter("[%(asctime)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S"))
    logger.addHandler(handler)
    if logger.level == logging.NOTSET or logger.level > logging.INFO:
        logger.setLevel(logging.INFO)
    return handler
