"""
Logging setup. stdout carries the JSON-RPC stream, so every record goes to stderr.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler

stderr_console = Console(stderr=True)


def configure_logging(level: str = "INFO") -> None:
    handler = RichHandler(console=stderr_console, show_path=False, rich_tracebacks=True)
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )
    # httpx logs every request URL at INFO, and the URL carries the webhook key
    logging.getLogger("httpx").setLevel(logging.WARNING)


def truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit] + "..."
