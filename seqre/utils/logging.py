"""JSON logging

Call initialize_logging() once at process start (build_core() does).
Every log record becomes one JSON line on stdout:

    {"timestamp": "2025-10-15T12:00:00.000Z", "level": "INFO",
     "logger": "seqre.services.image_service",
     "message": "Cleaned up orphaned image files.", "count": 3}

Context travels through `extra`. Fields named like payloads or keys (see
SENSITIVE_FIELDS) are written as "[redacted]": logs must never hold what
the store is meant to keep secret.
"""

import os
import json
import logging
import logging.config
from datetime import datetime, UTC
from typing import Any

from seqre.constants import ENV


# Attributes every LogRecord carries; anything else arrived through `extra`
RESERVED_ATTRS = frozenset(vars(logging.LogRecord('', logging.NOTSET, '', 0, '', None, None))) | {'message', 'asctime'}

SENSITIVE_FIELDS = frozenset({'data', 'content', 'url', 'key', 'envelope', 'password'})
REDACTED = '[redacted]'


def _timestamp(created: float) -> str:
    return datetime.fromtimestamp(created, tz=UTC).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


class JsonFormatter(logging.Formatter):
    """Render a LogRecord and its `extra` fields as one JSON object"""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            'timestamp': _timestamp(record.created),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }

        for name, value in vars(record).items():
            if name in RESERVED_ATTRS:
                continue
            log[name] = REDACTED if name in SENSITIVE_FIELDS else value

        if record.exc_info:
            log['exception'] = self.formatException(record.exc_info)
        if record.stack_info:
            log['stack'] = self.formatStack(record.stack_info)

        return json.dumps(log, default=str)


def logging_config(level: str) -> dict[str, Any]:
    """dictConfig schema: JsonFormatter on stdout for the root logger."""
    return {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'json': {'()': JsonFormatter},
        },
        'handlers': {
            'stdout': {
                'class': 'logging.StreamHandler',
                'formatter': 'json',
                'stream': 'ext://sys.stdout',
            },
        },
        'root': {
            'level': level,
            'handlers': ['stdout'],
        },
    }


def initialize_logging(level: str | None = None) -> None:
    """Install JSON logging at `level`, defaulting to LOG_LEVEL (or INFO)."""
    logging.config.dictConfig(logging_config((level or os.getenv(ENV.App.LOG_LEVEL, 'INFO')).upper()))
