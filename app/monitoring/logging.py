"""
Structured logging with credential sanitization.

This module configures the root logger once at startup using structlog:
- Pretty console output with rich tracebacks in development
- JSON output elsewhere (for log shippers)
- Control-character escaping to prevent log injection
- Redaction of bearer tokens and API keys
- Request ID correlation through context variables

Module loggers stay plain stdlib loggers (``file_logger(getLogger(__name__))``);
their records are rendered by the structlog formatter attached here.

Examples
--------
>>> from app.monitoring import configure_logging
>>> configure_logging()
"""

from logging import Filter, LogRecord, StreamHandler, root
from re import Pattern
from re import compile as re_compile
from typing import Any

from structlog import configure
from structlog.contextvars import (
    bind_contextvars,
    clear_contextvars,
    get_contextvars,
    merge_contextvars,
)
from structlog.dev import ConsoleRenderer, RichTracebackFormatter
from structlog.processors import JSONRenderer, add_log_level
from structlog.processors import json as struct_json
from structlog.stdlib import (
    BoundLogger,
    ExtraAdder,
    LoggerFactory,
    ProcessorFormatter,
    add_logger_name,
    filter_by_level,
)
from structlog.types import EventDict, Processor, WrappedLogger

from app.configs.settings import settings
from app.utils.helpers import today_str

# Sensitive headers to redact
SENSITIVE_HEADERS: frozenset[str] = frozenset(
    {
        "authorization",
        "cookie",
        "x-api-key",
        "proxy-authorization",
    },
)

SECRET_PATTERNS: list[tuple[Pattern, str]] = [
    # JWT tokens first, they also match the bearer pattern
    (re_compile(r"eyJ[a-zA-Z0-9_-]*\.eyJ[a-zA-Z0-9_-]*\.[a-zA-Z0-9_-]*"), "[REDACTED_JWT]"),
    (re_compile(r"(?i)bearer\s+[a-zA-Z0-9._~+/-]+=*"), "Bearer [REDACTED]"),
    (re_compile(r"apikey:[^\s,]+"), "apikey:[REDACTED]"),
]

# Characters to sanitize to prevent log injection
CONTROL_CHARS = str.maketrans({"\n": "\\n", "\r": "\\r", "\t": "\\t", "\x00": ""})


def sanitize_log_message(message: str) -> str:
    r"""
    Escape control characters in a log message.

    Examples
    --------
    >>> sanitize_log_message("Hello\nWorld")
    'Hello\\nWorld'
    """
    return message.translate(CONTROL_CHARS)


def sanitize_headers(headers: dict[str, Any]) -> dict[str, Any]:
    """
    Return headers with sensitive values redacted.

    Examples
    --------
    >>> sanitize_headers({"Authorization": "Bearer token123", "Content-Type": "json"})
    {'Authorization': '[REDACTED]', 'Content-Type': 'json'}
    """
    return {k: "[REDACTED]" if k.lower() in SENSITIVE_HEADERS else v for k, v in headers.items()}


def redact_secrets(message: str) -> str:
    """
    Redact credentials from a log message.

    Examples
    --------
    >>> redact_secrets("client apikey:abc123 blocked")
    'client apikey:[REDACTED] blocked'
    """
    for pattern, replacement in SECRET_PATTERNS:
        message = pattern.sub(replacement, message)
    return message


def add_timestamp(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    event_dict["timestamp"] = today_str()
    return event_dict


def sanitize_event_dict(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Sanitize every string value of the event and redact header dictionaries."""
    for key, value in event_dict.items():
        if isinstance(value, str):
            event_dict[key] = redact_secrets(sanitize_log_message(value))
        elif key.lower() == "headers" and isinstance(value, dict):
            event_dict[key] = sanitize_headers(value)
    return event_dict


def get_renderer(*, colors: bool = True) -> Processor:
    """Console renderer in development, JSON renderer everywhere else."""
    if settings.ENVIRONMENT == "development":
        return ConsoleRenderer(
            colors=colors,
            pad_level=False,
            exception_formatter=RichTracebackFormatter(),
        )
    return JSONRenderer(serializer=struct_json.dumps)


class RequestIdFilter(Filter):
    """Inject the bound request_id into stdlib log records."""

    def filter(self, record: LogRecord) -> bool:
        record.request_id = get_contextvars().get("request_id", "N/A")
        return True


def configure_logging() -> None:
    """Configure structured logging for the application."""
    # Clear any existing root handlers to prevent duplicates on reload
    root.handlers.clear()
    root.setLevel(settings.LOG_LEVEL.upper())

    configure(
        processors=[
            filter_by_level,
            merge_contextvars,
            add_logger_name,
            add_log_level,
            ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=BoundLogger,
        cache_logger_on_first_use=True,
    )

    console_handler = StreamHandler()
    console_handler.addFilter(RequestIdFilter())
    console_handler.setFormatter(
        ProcessorFormatter(
            processors=[
                ProcessorFormatter.remove_processors_meta,
                sanitize_event_dict,
                get_renderer(colors=True),
            ],
            foreign_pre_chain=[
                merge_contextvars,
                add_logger_name,
                add_log_level,
                add_timestamp,
                ExtraAdder(),
            ],
        ),
    )
    root.addHandler(console_handler)


def bind_request_id(request_id: str) -> None:
    """Bind request ID to the current logging context."""
    bind_contextvars(request_id=request_id)


def clear_context() -> None:
    clear_contextvars()
