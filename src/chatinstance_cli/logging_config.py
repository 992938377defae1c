import sys
from pathlib import Path
from typing import Any

from loguru import logger

DEFAULT_LOG_FILE = "chatinstance.log"

_CONSOLE_FORMAT = "<level>{level:<8}</level> | <level>{message}</level>"
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | {name}:{function}:{line} - {message}"


def _console_handler(level: str, options: dict[str, Any]) -> tuple[dict[str, Any], str]:
    # stderr only: stdout carries the streamed reply.
    handler = {"sink": sys.stderr, "level": level, "format": _CONSOLE_FORMAT}
    return handler, f"console (stderr, {level})"


def _file_handler(level: str, options: dict[str, Any]) -> tuple[dict[str, Any], str]:
    path = str(options.get("path", DEFAULT_LOG_FILE))
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    handler = {
        "sink": path,
        "level": level,
        "format": _FILE_FORMAT,
        "rotation": options.get("rotation", "5 MB"),
        "retention": options.get("retention", 3),
    }
    return handler, f"file ({path}, {level})"


_HANDLER_BUILDERS = {
    "console": _console_handler,
    "file": _file_handler,
}


def default_consumers(debug: bool = False) -> list[dict[str, Any]]:
    """Console at WARNING (DEBUG with ``--debug``) plus the rotating log file."""
    return [
        {"type": "console", "level": "DEBUG" if debug else "WARNING"},
        {"type": "file", "path": DEFAULT_LOG_FILE},
    ]


def setup_logging(
    level: str = "INFO",
    consumers: list[dict[str, Any]] | None = None,
    *,
    debug: bool = False,
) -> list[str]:
    """Install the configured loguru handlers, replacing any existing ones.

    Each consumer entry is ``{"type": "console"|"file", "level": ..., ...}``;
    ``debug`` forces every handler down to DEBUG. Returns one description per
    installed handler, for the start-up banner.
    """
    if consumers is None:
        consumers = default_consumers(debug)

    handlers: list[dict[str, Any]] = []
    descriptions: list[str] = []
    unknown: list[str] = []
    for entry in consumers:
        sink_type = entry.get("type", "")
        build = _HANDLER_BUILDERS.get(sink_type)
        if build is None:
            unknown.append(sink_type)
            continue
        sink_level = "DEBUG" if debug else entry.get("level", level)
        handler, description = build(sink_level, entry)
        handlers.append(handler)
        descriptions.append(description)

    logger.configure(handlers=handlers)
    for sink_type in unknown:
        logger.warning(f"Unknown log consumer type: {sink_type!r}")
    return descriptions
