"""
Logging utility for the messaging core.

Wraps a standard logger and emits each record as a JSON document so that
best-effort failures (unread counters, real-time publish) keep their full
context in the server logs.
"""

import json
import logging
from datetime import datetime


class StructuredLogger:
    """Structured logger keyed by component name."""

    def __init__(self, name: str, level: int = None):
        """
        Args:
            name: Logger name
            level: Optional level override; inherits the root config otherwise
        """
        self.logger = logging.getLogger(name)
        if level is not None:
            self.logger.setLevel(level)

    def _log_structured(self, level: int, message: str, exc_info: bool = False, **kwargs):
        if not self.logger.isEnabledFor(level):
            return

        log_data = {
            "timestamp": datetime.utcnow().isoformat(),
            "level": logging.getLevelName(level),
            "message": message,
            "component": self.logger.name,
        }
        log_data.update(kwargs)

        self.logger.log(level, json.dumps(log_data, default=str), exc_info=exc_info)

    def debug(self, message: str, **kwargs):
        self._log_structured(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs):
        self._log_structured(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs):
        self._log_structured(logging.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs):
        self._log_structured(logging.ERROR, message, **kwargs)

    def exception(self, message: str, **kwargs):
        """Log an error together with the active traceback."""
        self._log_structured(logging.ERROR, message, exc_info=True, **kwargs)


def configure_logging(level_name: str = "INFO"):
    """Root logging setup, applied once at application start."""
    logging.basicConfig(
        level=getattr(logging, level_name.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def get_logger(name: str) -> StructuredLogger:
    return StructuredLogger(name)
