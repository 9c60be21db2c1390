# llm_whip/utils/logger.py

"""
Logging configuration for llm-whip

Log records go to stderr so that alerts written to stdout stay readable.
"""
import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

TEXT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Third-party loggers that are noisy at INFO
QUIET_LOGGERS = ['watchdog', 'httpx', 'httpcore', 'asyncio']


class JsonFormatter(logging.Formatter):
    """One JSON object per record"""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'function': record.funcName,
            'line': record.lineno,
            'thread': record.threadName,
        }
        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class ColorFormatter(logging.Formatter):
    """Text format with the level name colored for terminals"""

    LEVEL_COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[41m',
    }
    RESET = '\033[0m'

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelname)
        if color is None:
            return super().format(record)
        # Work on a copy so file handlers never see escape codes
        colored = logging.makeLogRecord(record.__dict__)
        colored.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(colored)


def _build_formatter(log_format: str, stream=None) -> logging.Formatter:
    log_format = log_format.lower()
    if log_format == "json":
        return JsonFormatter()
    if log_format == "color" and (stream is None or stream.isatty()):
        return ColorFormatter(fmt=TEXT_FORMAT, datefmt=DATE_FORMAT)
    return logging.Formatter(fmt=TEXT_FORMAT, datefmt=DATE_FORMAT)


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    log_format: str = "text",  # text, json, or color
    max_file_size: int = 5 * 1024 * 1024,
    backup_count: int = 3
) -> logging.Logger:
    """
    Configure the root logger for a CLI run

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        log_file: Also log to this rotating file
        log_format: text, json or color (color falls back to text off a terminal)
        max_file_size: Bytes before the log file rotates
        backup_count: Rotated files to keep
    """
    level = getattr(logging, str(log_level).upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(_build_formatter(log_format, sys.stderr))
    root_logger.addHandler(console)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path, maxBytes=max_file_size, backupCount=backup_count, encoding='utf-8'
        )
        file_handler.setFormatter(_build_formatter("json" if log_format == "json" else "text"))
        root_logger.addHandler(file_handler)
        root_logger.debug(f"Logging to file: {log_path}")

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    return root_logger


def log_exception(logger: logging.Logger, exception: Exception,
                  message: str = "Exception occurred"):
    """Log exception with traceback"""
    logger.error(f"{message}: {exception}", exc_info=(type(exception), exception, exception.__traceback__))
