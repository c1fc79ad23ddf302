import logging
import sys
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from loguru import logger

_CONSOLE_FORMAT = "<level>{level:<8}</level> | <cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | {name}:{function}:{line} - {message}"

# Streamed replies go to stdout, so the console sink stays on stderr and quiet by default.
_DEFAULT_CONSUMERS = [
    {"type": "console", "level": "WARNING"},
    {"type": "file", "path": "chat-client.log"},
]

_HTTP_LOGGERS = ("httpx", "httpcore")


@runtime_checkable
class LogConsumer(Protocol):
    def register(self, level: str) -> None: ...
    def describe(self, level: str) -> str: ...


class ConsoleLogConsumer:
    def __init__(self, stream: str = "stderr"):
        if stream not in ("stderr", "stdout"):
            raise ValueError(f"Console stream must be 'stderr' or 'stdout', got {stream!r}")
        self._stream = stream

    def register(self, level: str) -> None:
        sink = sys.stdout if self._stream == "stdout" else sys.stderr
        logger.add(sink, level=level, format=_CONSOLE_FORMAT)

    def describe(self, level: str) -> str:
        return f"console ({self._stream}, {level})"


class FileLogConsumer:
    """Rotating file sink. With ``serialize`` each record is written as one JSON line."""

    def __init__(
        self,
        path: str = "chat-client.log",
        rotation: str = "10 MB",
        retention: int = 3,
        serialize: bool = False,
    ):
        self._path = path
        self._rotation = rotation
        self._retention = retention
        self._serialize = serialize

    def register(self, level: str) -> None:
        Path(self._path).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            self._path,
            level=level,
            format=_FILE_FORMAT,
            rotation=self._rotation,
            retention=self._retention,
            serialize=self._serialize,
        )

    def describe(self, level: str) -> str:
        kind = "jsonl" if self._serialize else "text"
        return f"file ({self._path}, {kind}, {level})"


_CONSUMER_TYPES: dict[str, type] = {
    "console": ConsoleLogConsumer,
    "file": FileLogConsumer,
}


class _LoguruBridge(logging.Handler):
    """Forwards records from stdlib loggers (httpx, httpcore) into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        logger.opt(exception=record.exc_info).log(level, f"[{record.name}] {record.getMessage()}")


def _bridge_http_loggers(level: str) -> None:
    bridge = _LoguruBridge()
    for name in _HTTP_LOGGERS:
        http_logger = logging.getLogger(name)
        http_logger.handlers = [bridge]
        http_logger.setLevel(level)
        http_logger.propagate = False


def setup_logging(
    level: str = "INFO",
    consumers: list[dict[str, Any]] | None = None,
    *,
    http_level: str = "WARNING",
) -> list[str]:
    """Replace loguru's default sink with the configured consumers.

    Each consumer entry is a dict with a ``type`` key, an optional ``level``
    overriding ``level``, and any constructor options for that type. Returns
    one description per consumer registered.
    """
    logger.remove()

    descriptions: list[str] = []
    for config in consumers if consumers is not None else _DEFAULT_CONSUMERS:
        sink_type = config.get("type", "")
        cls = _CONSUMER_TYPES.get(sink_type)
        if cls is None:
            logger.warning(f"Unknown log consumer type: {sink_type!r}")
            continue

        options = {k: v for k, v in config.items() if k not in ("type", "level")}
        sink_level = config.get("level", level)
        consumer = cls(**options)
        consumer.register(sink_level)
        descriptions.append(consumer.describe(sink_level))

    _bridge_http_loggers(http_level)
    return descriptions
