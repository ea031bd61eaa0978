"""
Centralized logging configuration for the companion service.

Console output is colored and human-readable; the optional log file gets one
JSON object per record and rotates at 10 MB. Structured fields are attached
with ``extra={"extra_fields": {...}}``.
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

SENSITIVE_KEYS = ['password', 'token', 'secret', 'authorization', 'api_key', 'apikey', 'api-key']

NOISY_LOGGERS = ("httpx", "httpcore", "urllib3", "uvicorn.access")


class ColoredFormatter(logging.Formatter):
    """Adds ANSI colors to the level name."""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
        'RESET': '\033[0m',
    }

    def format(self, record: logging.LogRecord) -> str:
        level_color = self.COLORS.get(record.levelname, self.COLORS['RESET'])
        # Copy so the file handler still sees the plain level name
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = f"{level_color}{record.levelname:8s}{self.COLORS['RESET']}"
        return super().format(record)


class JSONFormatter(logging.Formatter):
    """Outputs one JSON document per log record."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
        }

        extra_fields = getattr(record, 'extra_fields', None)
        if extra_fields:
            log_data.update(filter_sensitive_data(extra_fields))

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


def setup_logging(config: Any) -> None:
    """
    Configure the root logger from settings.

    Args:
        config: Settings object with the ``log_*`` fields
    """
    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    log_level = getattr(logging, config.log_level.upper(), logging.INFO)
    root_logger.setLevel(log_level)

    if config.log_console_enabled:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(log_level)
        console_handler.setFormatter(ColoredFormatter(
            "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        ))
        root_logger.addHandler(console_handler)

    if config.log_file_enabled:
        log_path = Path(config.log_file_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            filename=str(log_path),
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding='utf-8'
        )
        file_handler.setLevel(log_level)

        if config.log_json_format:
            file_handler.setFormatter(JSONFormatter())
        else:
            file_handler.setFormatter(logging.Formatter(
                "%(asctime)s | %(levelname)s | %(name)s:%(funcName)s:%(lineno)d | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S"
            ))
        root_logger.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root_logger.info(
        f"Logging initialized: level={config.log_level.upper()}, "
        f"console={config.log_console_enabled}, "
        f"file={config.log_file_enabled}"
    )


def filter_sensitive_data(data: Any, sensitive_keys: Optional[list] = None) -> Any:
    """
    Mask values whose key looks like a credential.

    Args:
        data: dict, list or primitive
        sensitive_keys: Key fragments to mask (defaults to SENSITIVE_KEYS)

    Returns:
        A copy of ``data`` with sensitive values replaced by "***FILTERED***"
    """
    if sensitive_keys is None:
        sensitive_keys = SENSITIVE_KEYS

    if isinstance(data, dict):
        return {
            key: "***FILTERED***" if any(s in str(key).lower() for s in sensitive_keys)
            else filter_sensitive_data(value, sensitive_keys)
            for key, value in data.items()
        }
    if isinstance(data, list):
        return [filter_sensitive_data(item, sensitive_keys) for item in data]
    return data


def truncate_large_data(data: str, max_length: int = 5000) -> str:
    """Cut ``data`` to ``max_length`` characters, noting the original length."""
    if len(data) <= max_length:
        return data
    return data[:max_length] + f"... (truncated, total length: {len(data)})"
