from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

from walletrates.config.settings import Settings

PACKAGE_LOGGER = "walletrates"


class JsonFormatter(logging.Formatter):
    """One JSON object per line; ``extra=`` fields are kept."""

    _skip = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(
            (name, value) for name, value in vars(record).items() if name not in self._skip
        )
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class _PackageHandler(logging.StreamHandler):
    pass


def configure_logging(settings: Settings, name: str = PACKAGE_LOGGER) -> logging.Logger:
    """Apply ``log_level``/``log_json`` to the package logger.

    A stream handler is attached only when the application has not set up
    the root logger, so host applications keep control of their handlers.
    Calling it again replaces the previous configuration.
    """
    logger = logging.getLogger(name)
    logger.setLevel(settings.log_level.upper())

    for handler in [h for h in logger.handlers if isinstance(h, _PackageHandler)]:
        logger.removeHandler(handler)

    if not logging.getLogger().handlers:
        handler = _PackageHandler()
        if settings.log_json:
            handler.setFormatter(JsonFormatter())
        else:
            handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        logger.addHandler(handler)
    return logger
