import json
import logging
import socket
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

LOGGER_NAME = "uploads"


class StructuredMessage:
    def __init__(self, message, **kwargs):
        self.message = message
        self.kwargs = kwargs

    def __str__(self):
        return '%s' % (self.message)


class StructuredFormatter(logging.Formatter):
    """Renders each record as one JSON line, merging structured_log fields."""

    def __init__(self):
        super().__init__()
        self.hostname = socket.gethostname()

    def format(self, record):
        if isinstance(record.msg, StructuredMessage):
            message = record.msg.message
            extra = record.msg.kwargs
        else:
            message = record.getMessage()
            extra = {}

        log_data = {
            'message': message,
            'level': record.levelname,
            'timestamp': datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            'logger': record.name,
            'application': 'uploads-server',
            'hostname': self.hostname,
            'function': record.funcName,
            'line_number': record.lineno,
            'filename': record.filename,
        }
        log_data.update(extra)

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logger(log_dir: Optional[Path] = None) -> logging.Logger:
    """Return the shared server logger.

    The console handler is attached on first use. A JSON file handler is
    attached the first time a ``log_dir`` is given.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)

    if not any(getattr(h, "_uploads_console", False) for h in logger.handlers):
        console_formatter = logging.Formatter(
            '%(asctime)s - %(levelname)s - %(message)s'
        )
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(console_formatter)
        console_handler._uploads_console = True
        logger.addHandler(console_handler)

    if log_dir is not None and not any(isinstance(h, logging.FileHandler) for h in logger.handlers):
        log_dir = Path(log_dir)
        log_dir.mkdir(exist_ok=True, parents=True)

        file_handler = logging.FileHandler(log_dir / "uploads_server.log")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(StructuredFormatter())
        logger.addHandler(file_handler)

    return logger


def structured_log(message, **kwargs):
    return StructuredMessage(message, **kwargs)
