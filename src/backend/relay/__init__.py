__app__ = "Device Realtime Audio Relay"
__author__ = "AI GBB Team"
__version__ = "0.1.0"

import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Optional

from relay.config import RelaySettings


class JSONFormatter(logging.Formatter):
    """One JSON object per log line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            entry["error"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


# handlers installed by setup_logging, replaced on every call
_installed_handlers: list[logging.Handler] = []


def setup_logging(settings: Optional[RelaySettings] = None) -> logging.Logger:
    settings = settings or RelaySettings()
    logger = logging.getLogger()
    logger.setLevel(settings.log_level)

    for handler in _installed_handlers:
        logger.removeHandler(handler)
        handler.close()
    _installed_handlers.clear()

    if settings.log_json:
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(settings.log_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)
    _installed_handlers.append(console_handler)

    # File handler
    if settings.log_file:
        file_handler = RotatingFileHandler(
            settings.log_file, maxBytes=10*1024*1024, backupCount=5
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
        _installed_handlers.append(file_handler)

    return logger
