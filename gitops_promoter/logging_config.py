from __future__ import annotations

import logging
import os

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(threadName)s: %(message)s"

_configured = False


def configure_logging(level: str | int | None = None, *, force: bool = False) -> None:
    """
    Configure root logging for the process.

    `level` falls back to the LOG_LEVEL env var, then INFO. Unknown level names
    fall back to INFO instead of failing startup.
    """
    global _configured
    if _configured and not force:
        return

    raw = level if level is not None else os.environ.get("LOG_LEVEL", "INFO")
    if isinstance(raw, str):
        resolved = logging.getLevelName(raw.strip().upper())
        if not isinstance(resolved, int):
            resolved = logging.INFO
    else:
        resolved = raw

    logging.basicConfig(level=resolved, format=DEFAULT_LOG_FORMAT, force=force)
    # PyGithub logs every request at DEBUG; keep it quiet unless asked for.
    logging.getLogger("github").setLevel(max(resolved, logging.INFO))
    _configured = True


def ensure_logging_configured() -> None:
    if not logging.getLogger().handlers:
        configure_logging()
