from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

import structlog
from structlog.typing import EventDict, Processor

from backend.app.config import AppSettings
from backend.app.telemetry import TELEMETRY_LOGGER_NAME

LOG_FILE_NAME = "keyword-monitor.log"
TELEMETRY_LOG_FILE_NAME = "keyword-monitor-telemetry.log"
ROOT_LOGGER_NAME = "keyword_monitor"
# httpx logs full request URLs at INFO, and ours carry the API key as a query parameter.
_QUIETED_LOGGERS: tuple[str, ...] = ("httpx", "httpcore")


def configure_application_logging(settings: AppSettings) -> Path:
    """Route `keyword_monitor.*` records to stdout and rotating JSON files.

    Telemetry events get their own file and never reach the console.
    Returns the path of the main log file.
    """
    log_dir = settings.log_dir
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME
    telemetry_log_file = log_dir / TELEMETRY_LOG_FILE_NAME

    _configure_structlog()

    console_stream = sys.stdout
    console_handler = logging.StreamHandler(stream=console_stream)
    console_handler.setLevel(_resolve_log_level(settings.log_level))
    console_handler.setFormatter(
        _build_console_formatter(enable_colors=_stream_supports_color(console_stream))
    )
    _install_handlers(
        ROOT_LOGGER_NAME,
        logging.DEBUG,
        console_handler,
        _rotating_json_handler(log_file, settings, level=logging.DEBUG),
    )
    _install_handlers(
        TELEMETRY_LOGGER_NAME,
        logging.INFO,
        _rotating_json_handler(telemetry_log_file, settings, level=logging.INFO),
    )
    for logger_name in _QUIETED_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    logging.getLogger(ROOT_LOGGER_NAME).info(
        "logging configured console_level=%s path=%s max_bytes=%s backups=%s telemetry_path=%s",
        settings.log_level.upper(),
        log_file,
        settings.log_max_bytes,
        settings.log_backup_count,
        telemetry_log_file,
    )
    return log_file


def _install_handlers(logger_name: str, level: int, *handlers: logging.Handler) -> None:
    logger = logging.getLogger(logger_name)
    logger.setLevel(level)
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    for handler in handlers:
        logger.addHandler(handler)


def _rotating_json_handler(path: Path, settings: AppSettings, *, level: int) -> logging.Handler:
    handler = RotatingFileHandler(
        path,
        maxBytes=settings.log_max_bytes,
        backupCount=settings.log_backup_count,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(_build_file_formatter())
    return handler


def _resolve_log_level(raw_level: str) -> int:
    normalized = raw_level.strip().upper()
    resolved = getattr(logging, normalized, None)
    if isinstance(resolved, int):
        return resolved
    return logging.INFO


def _configure_structlog() -> None:
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def _build_console_formatter(*, enable_colors: bool) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_shared_pre_chain(),
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.dev.ConsoleRenderer(colors=enable_colors),
        ],
    )


def _build_file_formatter() -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_shared_pre_chain(),
        processors=[
            _add_record_metadata,
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(sort_keys=True),
        ],
    )


def _shared_pre_chain() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
    ]


def _add_record_metadata(
    _logger: logging.Logger,
    _method_name: str,
    event_dict: EventDict,
) -> EventDict:
    record = event_dict.get("_record")
    if isinstance(record, logging.LogRecord):
        event_dict["pathname"] = record.pathname
        event_dict["lineno"] = record.lineno
        event_dict["func_name"] = record.funcName
        event_dict["process"] = record.process
        event_dict["thread"] = record.thread
        event_dict["thread_name"] = record.threadName
    return event_dict


def _stream_supports_color(stream: object) -> bool:
    isatty = getattr(stream, "isatty", None)
    if callable(isatty):
        try:
            return bool(isatty())
        except Exception:
            return False
    return False
