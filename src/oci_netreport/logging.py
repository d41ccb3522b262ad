from __future__ import annotations

import json
import logging
import os
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

_JSON_SCALAR_TYPES = (str, int, float, bool)

_RESERVED_RECORD_KEYS = frozenset(
    (
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
    )
)


def _is_json_safe(value: object, depth: int = 3) -> bool:
    if isinstance(value, _JSON_SCALAR_TYPES):
        return True
    if depth <= 0:
        return False
    if isinstance(value, dict):
        return all(isinstance(k, str) and _is_json_safe(v, depth - 1) for k, v in value.items())
    if isinstance(value, (list, tuple)):
        return all(_is_json_safe(v, depth - 1) for v in value)
    return False


@dataclass(frozen=True)
class LogConfig:
    level: str = "WARNING"
    json_logs: bool = False


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        # Extra fields passed through logger.*(extra=...)
        for key, value in record.__dict__.items():
            if key in _RESERVED_RECORD_KEYS or value is None:
                continue
            if _is_json_safe(value):
                payload[key] = value
        return json.dumps(payload, sort_keys=True)


class PlainFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        timestamp = datetime.fromtimestamp(record.created, timezone.utc).isoformat(timespec="seconds")
        step = getattr(record, "step", None)
        phase = getattr(record, "phase", None)
        message = record.getMessage()
        if step or phase:
            message = f"[{step or 'unknown'}:{phase or 'unknown'}] {message}"
        error = getattr(record, "error", None)
        if error:
            message = f"{message} ({error})"
        return f"{timestamp} {record.levelname} {record.name}: {message}"


def _level_from_str(level: str) -> int:
    value = getattr(logging, (level or "").upper(), None)
    if isinstance(value, int):
        return value
    return logging.WARNING


def setup_logging(config: Optional[LogConfig] = None) -> None:
    """
    Configure the root logger once. Subsequent calls are no-ops.

    Diagnostics go to stderr so they never mix with the report file or the
    status line printed on stdout.
    Env overrides:
      - OCI_NETREPORT_LOG_LEVEL (default WARNING)
      - OCI_NETREPORT_JSON_LOGS (1/true to enable)
    """
    if getattr(setup_logging, "_configured", False):
        return

    env_level = os.getenv("OCI_NETREPORT_LOG_LEVEL")
    env_json = os.getenv("OCI_NETREPORT_JSON_LOGS")

    level = _level_from_str((config.level if config else None) or env_level or "WARNING")
    json_logs = (config.json_logs if config else False) or ((env_json or "").lower() in ("1", "true", "yes"))

    handler = logging.StreamHandler(stream=sys.stderr)
    handler.setFormatter(JsonFormatter() if json_logs else PlainFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [handler]

    # The SDK logs every request at INFO/DEBUG
    logging.getLogger("oci").setLevel(max(level, logging.WARNING))

    setattr(setup_logging, "_handler", handler)
    setattr(setup_logging, "_configured", True)


def reset_logging() -> None:
    """
    Undo setup_logging so the next call reconfigures (used by tests).
    """
    handler = getattr(setup_logging, "_handler", None)
    root = logging.getLogger()
    if handler is not None:
        root.removeHandler(handler)
    root.setLevel(logging.WARNING)
    logging.getLogger("oci").setLevel(logging.NOTSET)
    setattr(setup_logging, "_handler", None)
    setattr(setup_logging, "_configured", False)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_event(
    logger: logging.Logger,
    level: int,
    message: str,
    *,
    step: str,
    phase: str,
    **extra: Any,
) -> None:
    payload: Dict[str, Any] = {"step": step, "phase": phase, "event": f"{step}.{phase}"}
    payload.update(extra)
    logger.log(level, message, extra=payload)
