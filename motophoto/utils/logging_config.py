"""Logging configuration for the application."""

import json
import logging
import sys
from datetime import datetime, timezone

# Attributes every LogRecord carries; anything else was passed via `extra`
_RESERVED_ATTRS = set(vars(logging.LogRecord('', 0, '', 0, '', (), None))) | {'message', 'asctime'}

PRETTY_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Handler installed by the last setup_logging call
_installed_handler = None


class JSONFormatter(logging.Formatter):
    """Render each record as a single JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            'time': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        for key, value in vars(record).items():
            if key not in _RESERVED_ATTRS and not key.startswith('_'):
                payload[key] = value
        if record.exc_info:
            payload['exc_info'] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def setup_logging(level: int = logging.INFO, json_format: bool = False) -> logging.Handler:
    """
    Configure logging for the application.

    Safe to call more than once: the handler installed by a previous call is
    replaced, not stacked.

    Args:
        level: Root log level
        json_format: Emit JSON lines on stdout instead of pretty lines on stderr

    Returns:
        The installed handler
    """
    global _installed_handler

    if json_format:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(PRETTY_FORMAT))

    # Configure the root logger
    root_logger = logging.getLogger()
    if _installed_handler is not None:
        root_logger.removeHandler(_installed_handler)
    _installed_handler = handler
    root_logger.setLevel(level)
    root_logger.addHandler(handler)

    # Set higher log levels for noisy components
    logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)
    logging.getLogger('uvicorn.access').setLevel(logging.WARNING)

    # Route uvicorn through the root handler
    for logger_name in ('uvicorn', 'uvicorn.error'):
        logger = logging.getLogger(logger_name)
        logger.handlers.clear()
        logger.propagate = True

    return handler
