"""File logging helper shared by every module logger."""

from logging import INFO, Logger
from logging.handlers import RotatingFileHandler
from pathlib import Path

from pythonjsonlogger.json import JsonFormatter

from app.configs.settings import settings

_file_handler: RotatingFileHandler | None = None


def _get_file_handler() -> RotatingFileHandler:
    global _file_handler  # noqa: PLW0603
    if _file_handler is None:
        log_file = Path(settings.LOG_FILE)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        _file_handler = RotatingFileHandler(log_file, maxBytes=5 * 1024 * 1024, backupCount=5)
        _file_handler.setLevel(INFO)
        _file_handler.setFormatter(
            JsonFormatter("%(asctime)s %(levelname)s %(name)s %(message)s"),
        )
    return _file_handler


def file_logger(logger: Logger) -> Logger:
    """
    Attach the shared rotating JSON file handler to a logger.

    The handler is only attached when ``LOG_TO_FILE`` is enabled; otherwise
    the logger is returned untouched and records propagate to the root
    handlers configured at startup.
    """
    if settings.LOG_TO_FILE:
        handler = _get_file_handler()
        if handler not in logger.handlers:
            logger.addHandler(handler)
    return logger
