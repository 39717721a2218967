"""Structured logging configuration using structlog.

- Development: colored console output
- Production: one JSON object per line

Secrets (provider keys, bearer tokens) are masked and transcript-sized
values are truncated before rendering, so job logs never carry meeting
content or credentials.

Usage:
    from meeting_minutes.core.logging import setup_logging, get_logger

    setup_logging()

    logger = get_logger(__name__)
    logger.info("transcription_started", user_id="123", filename="standup.wav")
"""

import logging
import sys
import time
import uuid
from collections.abc import MutableMapping
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import structlog
from structlog.types import EventDict, Processor

REQUEST_ID_HEADER = b"x-request-id"

SECRET_KEYS = {"api_key", "authorization", "token", "access_token", "cron_secret", "secret_key"}
BULKY_KEYS = {"prompt", "transcript", "transcript_text", "transcript_srt", "minutes", "audio"}
MAX_VALUE_CHARS = 200

LIBRARY_LOGGERS = [
    "uvicorn.access",
    "sqlalchemy.engine",
    "sqlalchemy.pool",
    "httpx",
    "httpcore",
    "openai",
    "asyncio",
]


def redact_secrets(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    for key in SECRET_KEYS & event_dict.keys():
        if event_dict[key]:
            event_dict[key] = "***"
    return event_dict


def truncate_bulky_values(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    for key in BULKY_KEYS & event_dict.keys():
        value = event_dict[key]
        if isinstance(value, (str, bytes)) and len(value) > MAX_VALUE_CHARS:
            event_dict[key] = f"<{len(value)} chars>"
    return event_dict


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        redact_secrets,
        truncate_bulky_values,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(use_json: bool) -> Processor:
    if use_json:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(
        colors=True,
        exception_formatter=structlog.dev.plain_traceback,
    )


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "auto",
    is_development: bool = True,
    logs_dir: str | None = None,
    log_to_file: bool = False,
    log_file_max_bytes: int = 10 * 1024 * 1024,
    log_file_backup_count: int = 5,
) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL; unknown names mean INFO
        log_format: 'auto' (JSON outside development), 'console' or 'json'
        is_development: Selects the renderer when log_format is 'auto'
        logs_dir: Directory for the rotating JSON log file
        log_to_file: Also write to ``{logs_dir}/meeting_minutes.log``
        log_file_max_bytes: Rotation size
        log_file_backup_count: Rotated files kept
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    use_json = not is_development if log_format == "auto" else log_format == "json"
    shared = _shared_processors()

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(processor=_renderer(use_json), foreign_pre_chain=shared)
    )
    console_handler.setLevel(level)
    root_logger.addHandler(console_handler)

    if log_to_file and logs_dir:
        log_path = Path(logs_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path / "meeting_minutes.log",
            maxBytes=log_file_max_bytes,
            backupCount=log_file_backup_count,
            encoding="utf-8",
        )
        # Files are always JSON
        file_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(processor=_renderer(True), foreign_pre_chain=shared)
        )
        file_handler.setLevel(level)
        root_logger.addHandler(file_handler)

    # SDK and driver chatter only at WARNING and above
    for name in LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, level))


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Example:
        logger = get_logger(__name__)
        logger.info("job_recorded", user_id="123", filename="standup.wav")
    """
    return structlog.stdlib.get_logger(name)


def bind_job_context(**fields: Any) -> None:
    """Attach job identifiers to every log line for the rest of the request."""
    structlog.contextvars.bind_contextvars(
        **{key: str(value) for key, value in fields.items() if value is not None}
    )


class LoggingMiddleware:
    """
    ASGI middleware for request logging.

    Binds a request id (taken from ``X-Request-ID`` when the client sends
    one) to all logs of the request, echoes it in the response headers and
    logs ``request_completed`` with status and duration. Health checks are
    not logged.
    """

    SKIP_PATHS = {"/health"}

    def __init__(self, app: Any) -> None:
        self.app = app
        self.logger = get_logger("http")

    async def __call__(self, scope: MutableMapping[str, Any], receive: Any, send: Any) -> None:
        if scope["type"] != "http" or scope.get("path") in self.SKIP_PATHS:
            await self.app(scope, receive, send)
            return

        incoming = dict(scope.get("headers") or []).get(REQUEST_ID_HEADER)
        request_id = incoming.decode("latin-1")[:64] if incoming else uuid.uuid4().hex[:12]

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            path=scope.get("path", ""),
            method=scope.get("method", ""),
        )

        status_code = 500
        started = time.perf_counter()

        async def send_wrapper(message: MutableMapping[str, Any]) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message.get("status", 500)
                message["headers"] = [
                    *message.get("headers", []),
                    (REQUEST_ID_HEADER, request_id.encode("latin-1")),
                ]
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            log = self.logger.info if status_code < 400 else self.logger.warning
            log(
                "request_completed",
                status_code=status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 1),
            )
            structlog.contextvars.clear_contextvars()
