"""Logging utilities for the detection pipeline and narration output."""

from __future__ import annotations

import atexit
import importlib
import importlib.util
import logging
import logging.handlers
from pathlib import Path
import queue
from typing import Any, Mapping


LOGGER_NAME = "sightline"
DEFAULT_LOG_PATH = "logs/sightline.log"
FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _rich_available() -> bool:
    return importlib.util.find_spec("rich") is not None


if _rich_available():
    rich_logging = importlib.import_module("rich.logging")
    rich_console = importlib.import_module("rich.console")
    rich_text = importlib.import_module("rich.text")
    RichHandler = rich_logging.RichHandler
    Console = rich_console.Console
    Text = rich_text.Text
    console = Console()
else:
    RichHandler = None
    Console = None
    Text = None
    console = None


def setup_logging() -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.INFO)

    if RichHandler is not None:
        if not any(isinstance(h, RichHandler) for h in logger.handlers):
            handler = RichHandler(rich_tracebacks=True, console=console)
            formatter = logging.Formatter("%(message)s", datefmt="[%X]")
            handler.setFormatter(formatter)
            logger.addHandler(handler)
    else:
        if not logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter("%(asctime)s %(levelname)s: %(message)s")
            handler.setFormatter(formatter)
            logger.addHandler(handler)

    logger.propagate = False
    return logger


logger = setup_logging()

_queue_listener: logging.handlers.QueueListener | None = None
_queue_handlers: list[logging.Handler] = []
_file_log_path: Path | None = None
_atexit_registered = False


def set_level(level_name: str) -> None:
    """Set the pipeline logger level from a name such as ``"DEBUG"``."""

    level = logging.getLevelName(str(level_name).upper())
    if not isinstance(level, int):
        level = logging.INFO
    logger.setLevel(level)


def enable_file_logging(log_path: Path, level: int = logging.INFO) -> None:
    """Mirror pipeline logs into ``log_path`` through a background queue.

    Calling again with the same path is a no-op; a different path replaces
    the running sink.
    """

    global _queue_listener, _file_log_path, _atexit_registered

    log_path = log_path.expanduser()
    if _file_log_path == log_path and _queue_listener is not None:
        return

    disable_file_logging()
    log_path.parent.mkdir(parents=True, exist_ok=True)

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT))

    log_queue: queue.SimpleQueue[logging.LogRecord] = queue.SimpleQueue()
    queue_handler = logging.handlers.QueueHandler(log_queue)
    queue_handler.setLevel(level)
    logger.addHandler(queue_handler)
    _queue_handlers.append(queue_handler)

    _queue_listener = logging.handlers.QueueListener(
        log_queue,
        file_handler,
        respect_handler_level=True,
    )
    _queue_listener.start()
    _file_log_path = log_path

    if not _atexit_registered:
        atexit.register(disable_file_logging)
        _atexit_registered = True


def disable_file_logging() -> None:
    """Flush and detach the file sink started by ``enable_file_logging``."""

    global _queue_listener, _file_log_path

    for handler in _queue_handlers:
        logger.removeHandler(handler)
    _queue_handlers.clear()

    if _queue_listener is not None:
        _queue_listener.stop()
        for handler in _queue_listener.handlers:
            handler.close()
        _queue_listener = None
    _file_log_path = None


def configure_logging(config: Mapping[str, Any]) -> Path | None:
    """Apply ``logging_level`` and the optional file sink from a config mapping.

    Returns the log file path when file logging was enabled.
    """

    set_level(config.get("logging_level", "INFO"))
    if not config.get("file_logging_enabled", False):
        disable_file_logging()
        return None
    log_path = Path(config.get("log_file_path") or DEFAULT_LOG_PATH)
    enable_file_logging(log_path, level=logger.level or logging.INFO)
    return log_path


def _format_text(message: str, style: str) -> Any:
    if Text is None:
        return message
    return Text(message, style=style)


def log_announcement(label: str, confidence: float, phrase: str) -> None:
    logger.info(
        _format_text(f"🔊 {phrase} ({label} {confidence * 100:.1f}%)", style="bold green")
    )


def log_error(message: str) -> None:
    logger.error(_format_text(message, style="bold red"))


def log_warning(message: str) -> None:
    logger.warning(_format_text(message, style="bold yellow"))
