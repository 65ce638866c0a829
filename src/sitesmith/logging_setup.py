"""Rich logging for the CLI."""

from __future__ import annotations

import logging
import os
from typing import Final

from rich.console import Console
from rich.logging import RichHandler

__all__ = ["console", "configure_logging"]

LOG_LEVEL_ENV: Final[str] = "SITESMITH_LOG_LEVEL"

console = Console()


class BuildLogHandler(RichHandler):
    """The one handler sitesmith installs; reconfiguring reuses it."""

    def __init__(self) -> None:
        super().__init__(console=console, rich_tracebacks=True, show_path=False, markup=False)
        self.setFormatter(logging.Formatter("%(message)s"))


def configure_logging(level_name: str | None = None) -> None:
    """Route every log record through a single :class:`BuildLogHandler`.

    ``level_name`` wins over ``SITESMITH_LOG_LEVEL``; unknown names mean INFO.
    """
    root_logger = logging.getLogger()
    if not any(isinstance(handler, BuildLogHandler) for handler in root_logger.handlers):
        root_logger.handlers.clear()
        root_logger.addHandler(BuildLogHandler())

    name = (level_name or os.getenv(LOG_LEVEL_ENV, "INFO")).upper()
    root_logger.setLevel(getattr(logging, name, logging.INFO))

    # markdown-it is chatty at DEBUG.
    logging.getLogger("markdown_it").setLevel(logging.WARNING)
    logging.captureWarnings(True)
