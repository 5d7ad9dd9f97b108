"""
CodeShelf Structured Logging Configuration

Provides:
- JSON structured logging for pipelines and batch jobs
- Colorized console output for interactive use
- Timed operation logging with duration_ms

Usage:
    from core.logging_config import setup_logging, get_logger

    # At startup
    setup_logging(level='INFO', json_format=True)

    # In modules
    logger = get_logger(__name__)
    logger.info('Classified snippet', extra={'language': 'python'})
"""

import logging
import json
import sys
import time
import traceback
from contextlib import contextmanager
from datetime import datetime, timezone


# Attributes every LogRecord carries; anything else came in through `extra`
_RESERVED_ATTRS = frozenset((
    'name', 'msg', 'args', 'created', 'filename', 'funcName',
    'levelname', 'levelno', 'lineno', 'module', 'msecs',
    'pathname', 'process', 'processName', 'relativeCreated',
    'stack_info', 'exc_info', 'exc_text', 'thread', 'threadName',
    'taskName', 'message',
))


# =============================================================================
# Custom Formatters
# =============================================================================

class JSONFormatter(logging.Formatter):
    """JSON structured log formatter."""

    def format(self, record):
        log_entry = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }

        # Add any extra attributes from the record
        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key.startswith('_'):
                continue
            log_entry[key] = value

        # Add exception info if present
        if record.exc_info:
            log_entry['exception'] = {
                'type': record.exc_info[0].__name__ if record.exc_info[0] else None,
                'message': str(record.exc_info[1]) if record.exc_info[1] else None,
                'traceback': traceback.format_exception(*record.exc_info)
            }

        return json.dumps(log_entry, default=str)


class ColoredFormatter(logging.Formatter):
    """Colorized console formatter."""

    COLORS = {
        'DEBUG': '\033[36m',    # Cyan
        'INFO': '\033[32m',     # Green
        'WARNING': '\033[33m',  # Yellow
        'ERROR': '\033[31m',    # Red
        'CRITICAL': '\033[35m', # Magenta
    }
    RESET = '\033[0m'

    def format(self, record):
        color = self.COLORS.get(record.levelname, '')
        reset = self.RESET

        timestamp = datetime.fromtimestamp(record.created).strftime('%Y-%m-%d %H:%M:%S')

        parts = [
            f'{color}[{timestamp}]{reset}',
            f'{color}{record.levelname:8}{reset}',
            f'{record.name}:',
            record.getMessage()
        ]

        # Item id shows up on most engine messages
        if hasattr(record, 'item_id'):
            parts.insert(2, f'[{str(record.item_id)[:8]}]')

        if hasattr(record, 'duration_ms'):
            parts.append(f'({record.duration_ms}ms)')

        message = ' '.join(parts)

        if record.exc_info:
            message += '\n' + ''.join(traceback.format_exception(*record.exc_info))

        return message


# =============================================================================
# Logger Setup
# =============================================================================

def setup_logging(level='INFO', json_format=False, stream=None):
    """
    Configure logging for the engine and its command-line tools.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Emit one JSON object per line instead of colored text
        stream: Output stream (default: stderr, keeping stdout for results)

    Returns:
        The configured root logger
    """
    numeric_level = getattr(logging, str(level).upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(stream or sys.stderr)
    console_handler.setLevel(numeric_level)

    if json_format:
        console_handler.setFormatter(JSONFormatter())
    else:
        console_handler.setFormatter(ColoredFormatter())

    root_logger.addHandler(console_handler)

    get_logger('codeshelf').debug('Logging configured', extra={
        'format': 'json' if json_format else 'colored',
        'level': logging.getLevelName(numeric_level)
    })

    return root_logger


def get_logger(name):
    """Get a logger with the given name."""
    return logging.getLogger(name)


# =============================================================================
# Operation Logging
# =============================================================================

@contextmanager
def log_operation(logger, operation, level=logging.DEBUG, **context):
    """
    Time one engine operation and log how it ended.

    The yielded dict is the log `extra`; set 'summary' on it to replace the
    default completion message. Failures are logged at WARNING with the
    error type and re-raised.

    Usage:
        with log_operation(logger, 'group_content', items=len(items)) as op:
            groups = build_groups(items)
            op['groups'] = len(groups)
    """
    extra = {'operation': operation, **context}
    start = time.perf_counter()

    try:
        yield extra
    except Exception as e:
        extra.pop('summary', None)
        extra['duration_ms'] = round((time.perf_counter() - start) * 1000, 2)
        extra['error_type'] = type(e).__name__
        logger.warning(f'{operation} failed: {e}', extra=extra)
        raise

    extra['duration_ms'] = round((time.perf_counter() - start) * 1000, 2)
    summary = extra.pop('summary', None)
    logger.log(level, f'{operation}: {summary}' if summary else f'{operation} finished', extra=extra)
