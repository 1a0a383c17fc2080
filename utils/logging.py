"""Logging configuration for the decision engine."""
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from config.settings import AppConfig, LogLevel

# LogRecord attributes that are not user-supplied ``extra`` fields
_RECORD_ATTRIBUTES = frozenset({
    'name', 'msg', 'args', 'created', 'filename', 'funcName',
    'levelname', 'levelno', 'lineno', 'module', 'msecs',
    'message', 'pathname', 'process', 'processName', 'relativeCreated',
    'thread', 'threadName', 'exc_info', 'exc_text', 'stack_info',
    'correlation_id', 'asctime', 'taskName'
})

TEXT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - [%(correlation_id)s] - %(message)s'


class CorrelationIDFilter(logging.Filter):
    """Ensures every record carries a correlation_id attribute."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, 'correlation_id', None) is None:
            record.correlation_id = '-'
        return True


class StructuredFormatter(logging.Formatter):
    """One JSON object per log line."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        correlation_id = getattr(record, 'correlation_id', '-')
        if correlation_id and correlation_id != '-':
            log_data["correlation_id"] = correlation_id

        for key, value in record.__dict__.items():
            if key in _RECORD_ATTRIBUTES:
                continue
            if isinstance(value, (str, int, float, bool, type(None))):
                log_data[key] = value
            elif isinstance(value, (list, tuple)):
                log_data[key] = [str(v) for v in value]

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def setup_logging(config: Optional[AppConfig] = None) -> None:
    """
    Configure the root logger with a single console handler.

    Args:
        config: Application configuration. INFO text logging if None.
    """
    log_level = config.log_level if config else LogLevel.INFO
    use_json = config.log_json if config else False

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level.value)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level.value)
    console_handler.addFilter(CorrelationIDFilter())

    if use_json:
        console_handler.setFormatter(StructuredFormatter())
    else:
        console_handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))

    root_logger.addHandler(console_handler)

    # Quieten chatty client libraries
    for name in ("aiohttp", "urllib3", "yfinance", "openai", "httpx", "sqlalchemy.engine"):
        logging.getLogger(name).setLevel(logging.WARNING)
