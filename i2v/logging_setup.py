"""Process-wide logging configuration."""

import logging

from rich.logging import RichHandler

_configured = False


def configure_logging(level: str = "INFO") -> None:
    """Install a Rich console handler on the root logger (idempotent)."""
    global _configured
    if _configured:
        logging.getLogger().setLevel(level.upper())
        return

    logging.basicConfig(
        level=level.upper(),
        format="%(name)s: %(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )
    # httpx logs every request at INFO; the remote client logs its own calls
    logging.getLogger("httpx").setLevel(logging.WARNING)
    _configured = True
