from __future__ import annotations

import json
import logging
import sys
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Deque, Dict, List, Optional


@dataclass
class AuditEvent:
    timestamp: str
    level: str
    message: str
    tenant_id: Optional[str] = None
    correlation_id: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "level": self.level,
            "message": self.message,
            "tenant_id": self.tenant_id,
            "correlation_id": self.correlation_id,
            "extra": self.extra,
        }


class InMemoryAuditStore:
    """Thread-safe audit event buffer for the web UI, newest first."""

    def __init__(self, max_events: int = 1000):
        self._events: Deque[AuditEvent] = deque(maxlen=max_events)
        self._lock = Lock()

    def append(self, event: AuditEvent) -> None:
        with self._lock:
            self._events.appendleft(event)

    def list(self, limit: int = 100, correlation_id: Optional[str] = None) -> List[AuditEvent]:
        with self._lock:
            events = list(self._events)
        if correlation_id:
            events = [event for event in events if event.correlation_id == correlation_id]
        return events[:limit]


class JsonAuditLogger:
    """Structured logger for provisioning and reporting events.

    Logs JSON to stdout and optionally mirrors events to an in-memory store
    for UI reporting. ``bind`` returns a logger that stamps every event with
    fixed context such as ``tenant_id`` and ``correlation_id``.
    """

    def __init__(
        self,
        name: str = "collab_admin",
        level: int = logging.INFO,
        store: Optional[InMemoryAuditStore] = None,
        context: Optional[Dict[str, Any]] = None,
        stream: Any = None,
    ):
        self.logger = logging.getLogger(name)
        if not self.logger.handlers:
            handler = logging.StreamHandler(stream or sys.stdout)
            handler.setFormatter(_JsonFormatter())
            self.logger.addHandler(handler)
        self.logger.setLevel(level)
        self.logger.propagate = False
        self.store = store
        self.context: Dict[str, Any] = dict(context or {})

    def bind(self, **context: Any) -> "JsonAuditLogger":
        bound = JsonAuditLogger.__new__(JsonAuditLogger)
        bound.logger = self.logger
        bound.store = self.store
        bound.context = {**self.context, **{k: v for k, v in context.items() if v is not None}}
        return bound

    def _log(self, level: int, message: str, **kwargs: Any) -> None:
        if not self.logger.isEnabledFor(level):
            return
        fields = {**self.context, **kwargs}
        event = self._build_event(level, message, **fields)
        if self.store:
            self.store.append(event)
        self.logger.log(level, message, extra={"extra": fields})

    def debug(self, message: str, **kwargs: Any) -> None:
        self._log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self._log(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._log(logging.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._log(logging.ERROR, message, **kwargs)

    def _build_event(self, level: int, message: str, **kwargs: Any) -> AuditEvent:
        return AuditEvent(
            timestamp=datetime.now(timezone.utc).isoformat(),
            level=logging.getLevelName(level),
            message=message,
            tenant_id=kwargs.get("tenant_id"),
            correlation_id=kwargs.get("correlation_id"),
            extra={k: v for k, v in kwargs.items() if k not in {"tenant_id", "correlation_id"}},
        )


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        extra: Optional[Dict[str, Any]] = getattr(record, "extra", None)  # type: ignore[attr-defined]
        if extra:
            payload.update(extra)

        return json.dumps(payload, default=str)
