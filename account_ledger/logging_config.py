"""
Structured logging for the ledger service.

Module loggers hang off the ``account_ledger`` logger; ``setup_logging``
installs a single console handler on it, either JSON or plain text.
"""

import json
import logging
from datetime import datetime, timezone

LOGGER_NAME = "account_ledger"

# Attributes present on every LogRecord; anything else came in through ``extra=``
_RESERVED = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key not in _RESERVED and not key.startswith("_"):
                log_entry[key] = value

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def setup_logging(level: str = "INFO", fmt: str = "json") -> logging.Logger:
    """
    Configure the service logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ...)
        fmt: ``json`` for one JSON object per line, ``text`` for plain lines

    Returns:
        The configured ``account_ledger`` logger
    """
    logger = logging.getLogger(LOGGER_NAME)

    # Replace handlers so repeated app construction does not duplicate output
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler()
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
        )

    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.propagate = False

    return logger
