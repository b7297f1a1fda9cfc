"""Structured logging configuration for harvest runs."""

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from pythonjsonlogger import jsonlogger

from harvester.config import Settings, settings as default_settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with source and timing fields."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        log_record['timestamp'] = datetime.now(timezone.utc).isoformat()
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['source'] = f"{record.filename}:{record.lineno}"

        if record.funcName:
            log_record['function'] = record.funcName


def setup_logging(config: Settings | None = None, base_dir: str | Path | None = None):
    """Configure logging for a harvest run.

    Args:
        config: Settings to read level and log directory from.
        base_dir: Optional base directory to place the log folder in.
                  If omitted, uses the current working directory.
    """
    config = config or default_settings

    root_logger = logging.getLogger()
    level = logging.DEBUG if config.debug else getattr(logging, config.log_level.upper())
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    # Console handler (human-readable)
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG)
    console_handler.setFormatter(logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    ))
    root_logger.addHandler(console_handler)

    if config.log_to_file:
        logs_dir = (Path(base_dir) if base_dir else Path.cwd()) / config.log_dir
        logs_dir.mkdir(parents=True, exist_ok=True)

        json_formatter = CustomJsonFormatter(
            "%(timestamp)s %(level)s %(name)s %(message)s"
        )

        json_handler = logging.FileHandler(logs_dir / "harvest.log", encoding="utf-8")
        json_handler.setLevel(logging.DEBUG)
        json_handler.setFormatter(json_formatter)
        root_logger.addHandler(json_handler)

        error_handler = logging.FileHandler(logs_dir / "error.log", encoding="utf-8")
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(json_formatter)
        root_logger.addHandler(error_handler)

    # Quiet chatty transport loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    return root_logger


class LoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that merges context fields into every record."""

    def process(self, msg, kwargs):
        extra = kwargs.get('extra', {})
        extra.update(self.extra)
        kwargs['extra'] = extra
        return msg, kwargs


def get_logger(name: str, **context) -> LoggerAdapter:
    """
    Get a logger with optional context fields.

    Args:
        name: Logger name (usually __name__)
        **context: Additional context fields (e.g., category='Lathes')

    Returns:
        LoggerAdapter with context
    """
    logger = logging.getLogger(name)
    return LoggerAdapter(logger, context)
