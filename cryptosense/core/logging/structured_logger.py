"""Structured JSON logging for CryptoSense."""
import logging
import json
import os
import sys
import traceback
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pathlib import Path


class StructuredLogger:
    """JSON structured logger compatible with ELK stack."""

    def __init__(self, name: str, level: str = "INFO",
                 log_file: Optional[Path] = None,
                 include_console: bool = True):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, level.upper(), logging.INFO))
        self.logger.handlers.clear()

        formatter = logging.Formatter(
            fmt='%(message)s',
            datefmt='%Y-%m-%dT%H:%M:%S'
        )

        if include_console:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setFormatter(formatter)
            self.logger.addHandler(console_handler)

        if log_file:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(formatter)
            self.logger.addHandler(file_handler)

    @property
    def name(self) -> str:
        return self.logger.name

    def _format_log(self, level: str, message: str,
                    context: Optional[Dict[str, Any]] = None,
                    error: Optional[BaseException] = None) -> str:
        """Format log entry as JSON."""
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": level,
            "message": message,
            "logger": self.logger.name
        }

        if context:
            log_entry["context"] = context

        if error:
            log_entry["error"] = {
                "type": type(error).__name__,
                "message": str(error),
                "traceback": "".join(
                    traceback.format_exception(type(error), error, error.__traceback__)
                ) if error.__traceback__ else None
            }

        return json.dumps(log_entry, default=str)

    def debug(self, message: str, context: Optional[Dict[str, Any]] = None):
        """Log debug message."""
        if self.logger.isEnabledFor(logging.DEBUG):
            self.logger.debug(self._format_log("DEBUG", message, context))

    def info(self, message: str, context: Optional[Dict[str, Any]] = None):
        """Log info message."""
        self.logger.info(self._format_log("INFO", message, context))

    def warning(self, message: str, context: Optional[Dict[str, Any]] = None,
                error: Optional[BaseException] = None):
        """Log warning message."""
        self.logger.warning(self._format_log("WARNING", message, context, error))

    def error(self, message: str, context: Optional[Dict[str, Any]] = None,
              error: Optional[BaseException] = None):
        """Log error message."""
        self.logger.error(self._format_log("ERROR", message, context, error))

    def critical(self, message: str, context: Optional[Dict[str, Any]] = None,
                 error: Optional[BaseException] = None):
        """Log critical message."""
        self.logger.critical(self._format_log("CRITICAL", message, context, error))

    # Alerting-specific convenience methods
    def log_alert_trigger(self, rule_id: str, symbol: str,
                          alert_type: str, severity: str):
        """Log a rule firing."""
        context = {
            "rule_id": rule_id,
            "symbol": symbol,
            "alert_type": alert_type,
            "severity": severity
        }
        self.info("Alert rule triggered", context)

    def log_delivery(self, history_id: str, method: str, success: bool,
                     error: Optional[str] = None):
        """Log one channel delivery outcome."""
        context = {
            "history_id": history_id,
            "method": method,
            "success": success,
            "error": error
        }
        if success:
            self.info(f"Notification delivered via {method}", context)
        else:
            self.warning(f"Notification via {method} failed", context)

    def log_feed_state(self, feed: str, state: str, **details: Any):
        """Log upstream feed lifecycle change."""
        context = {"feed": feed, "state": state, **details}
        if state in ("disconnected", "failed"):
            self.warning(f"Feed {feed} {state}", context)
        else:
            self.info(f"Feed {feed} {state}", context)


# Global logger factory
def get_logger(name: str, level: Optional[str] = None,
               log_file: Optional[Path] = None) -> StructuredLogger:
    """Get or create a structured logger."""
    return StructuredLogger(name, level or os.getenv("LOG_LEVEL", "INFO"), log_file)
