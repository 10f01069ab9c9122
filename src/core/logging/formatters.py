"""Log formatters for JSON and console output."""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from core.logging.context import get_log_context


class JSONFormatter(logging.Formatter):
    """
    JSON log formatter with context injection.

    Produces one JSON object per line for easy parsing with jq/grep.
    Fields that could carry credentials are never emitted.
    """

    # Fields to extract from LogRecord extras
    EXTRA_FIELDS = [
        # Errors
        "http_status",
        "error_category",
        "error_message",
        "reason",
        # Auth
        "auth_mode",
        "client_id",
        "resource",
        "expires_on",
        "delay_seconds",
        "refresh_reason",
        # Scaler
        "scaled_object",
        "namespace",
        # Query
        "workspace_id",
        "metric_name",
        "metric_value",
        "metric_threshold",
        "duration_ms",
        "retry_count",
    ]

    # Never written, even if a caller passes them by mistake
    REDACTED_FIELDS = ("client_secret", "access_token")

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3]
            + "Z",
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }

        # Inject context variables
        ctx = get_log_context()
        for key, value in ctx.items():
            if value:
                log_entry[key] = value

        # Add source location for DEBUG/ERROR
        if record.levelno in (logging.DEBUG, logging.ERROR, logging.CRITICAL):
            log_entry["file"] = f"{record.filename}:{record.lineno}"

        for field in self.EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_entry[field] = value

        for field in self.REDACTED_FIELDS:
            if getattr(record, field, None) is not None:
                log_entry[field] = "***"

        # Include exception info
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """
    Human-readable console formatter.

    Includes context when available.
    """

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_log_context()

        parts = [
            datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            record.levelname,
        ]

        if ctx["namespace"] and ctx["scaled_object"]:
            parts.append(f"[{ctx['namespace']}/{ctx['scaled_object']}]")
        elif ctx["scaled_object"]:
            parts.append(f"[{ctx['scaled_object']}]")

        prefix = " - ".join(parts)

        cycle_id = ctx["cycle_id"]
        if cycle_id:
            return f"{prefix} - [{cycle_id}] {record.getMessage()}"

        return f"{prefix} - {record.getMessage()}"
