"""Centralized logging configuration for logvec."""

import json
import logging
import logging.handlers
import re
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

CONSOLE_FORMAT = '%(asctime)s - %(levelname)s - [%(name)s] - %(message)s'
FILE_FORMAT = '%(asctime)s - %(levelname)s - [%(name)s:%(lineno)d] - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Record attributes copied into JSON output when present
CONTEXT_KEYS = ('operation', 'byte_offset', 'entry_index', 'group_key', 'shard')


class SecretRedactionFilter(logging.Filter):
    """
    Mask credentials that show up in logged message previews.

    Journal messages are logged verbatim when records are skipped, and
    applications do log things like ``password=...``.
    """

    SECRET_PATTERN = re.compile(
        r'(api[_-]?key|token|secret|passw(?:or)?d|credential|authorization)(["\']?\s*[:=]\s*["\']?)([^"\'\s,;]+)',
        re.IGNORECASE,
    )

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = self.redact(record.msg)
        if isinstance(record.args, tuple):
            record.args = tuple(self.redact(a) if isinstance(a, str) else a for a in record.args)
        elif isinstance(record.args, dict):
            record.args = {k: self.redact(v) if isinstance(v, str) else v for k, v in record.args.items()}
        return True

    @classmethod
    def redact(cls, text: str) -> str:
        return cls.SECRET_PATTERN.sub(r'\1=***REDACTED***', text)


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for log files that other tools ingest."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            'timestamp': datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'line': record.lineno,
            'message': record.getMessage(),
        }
        payload.update(getattr(record, 'extra_fields', None) or {})
        for key in CONTEXT_KEYS:
            if hasattr(record, key):
                payload[key] = getattr(record, key)
        if record.exc_info:
            payload['exception'] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class ConsoleFormatter(logging.Formatter):
    """Prefixes the level name with an ANSI color on terminals."""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname)
        if color is None:
            return super().format(record)
        plain = record.levelname
        record.levelname = f"{color}{plain}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = plain


def _console_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    formatter_cls = ConsoleFormatter if sys.stderr.isatty() else logging.Formatter
    handler.setFormatter(formatter_cls(CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    return handler


def _file_handler(log_dir: Path, json_format: bool) -> logging.Handler:
    log_dir.mkdir(parents=True, exist_ok=True)
    suffix = 'jsonl' if json_format else 'log'
    handler = logging.handlers.RotatingFileHandler(
        log_dir / f"logvec_{datetime.now():%Y%m%d}.{suffix}",
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding='utf-8',
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(JSONFormatter() if json_format else logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
    return handler


def setup_logging(
    name: str = 'logvec',
    level: str = 'INFO',
    log_dir: Optional[Path] = None,
    console: bool = True,
    file: bool = False,
    json_format: bool = True,
    redact_secrets: bool = True,
) -> logging.Logger:
    """
    Configure the package logger; calling it again replaces the handlers.

    Args:
        name: Logger name
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory for log files (default: ./logs)
        console: Log to stderr
        file: Log to a rotating file in ``log_dir``
        json_format: Write the file log as JSON lines
        redact_secrets: Mask credentials in logged messages

    Returns:
        Configured logger instance
    """
    numeric_level = getattr(logging, level.upper())
    logger = logging.getLogger(name)
    logger.setLevel(numeric_level)
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
    logger.filters.clear()
    logger.propagate = False

    handlers = []
    if console:
        handlers.append(_console_handler(numeric_level))
    if file:
        handlers.append(_file_handler(Path(log_dir) if log_dir else Path.cwd() / 'logs', json_format))

    for handler in handlers:
        # Logger filters skip records propagated from child loggers; handler filters see them all.
        if redact_secrets:
            handler.addFilter(SecretRedactionFilter())
        logger.addHandler(handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a module logger.

    Library modules never attach handlers themselves; records propagate to the
    ``logvec`` logger configured by :func:`setup_logging`.
    """
    return logging.getLogger(name)


def log_operation(logger: logging.Logger, operation: str, **context):
    """Log the start of a pipeline stage with its context."""
    logger.info(f"Starting operation: {operation}", extra={'operation': operation, 'extra_fields': context})


def log_skip(logger: logging.Logger, what: str, count: int, error: Optional[Exception] = None):
    """
    Log a skipped record or entry at WARNING level.

    Args:
        logger: Logger instance
        what: Kind of item skipped
        count: Running skip counter
        error: Error that caused the skip; its offset is attached when known
    """
    extra = {'extra_fields': {'skipped': what, 'count': count}}
    offset = getattr(error, 'byte_offset', None)
    if offset is not None:
        extra['byte_offset'] = offset
    suffix = f": {error}" if error else ""
    logger.warning(f"Skipped {what} (#{count}){suffix}", extra=extra)
