"""
Structured logging and audit trail.

Every component logs through a ``DiceLogger`` bound to its layer. Records go
through the stdlib ``logging`` tree under ``dicenft.<layer>.<name>`` and are
written by ``StructuredHandler`` as one JSON object per line (or a plain text
line when the configured format is ``text``).

Ownership and collateral changes are also written to an ``AuditLogger``:
each event is hash-chained to the previous one so a trail exported from a
running engine can be checked for gaps or edits.
"""

from __future__ import annotations

import contextvars
import hashlib
import json
import logging
import sys
import threading
import traceback
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

correlation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "correlation_id", default=""
)


class LogLevel(Enum):
    """Log severity levels."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class Layer(Enum):
    """Package layers for categorization."""
    TOKEN = "token"
    ENGINE = "engine"


@dataclass
class LogEvent:
    """Structured log event."""
    timestamp: str
    level: str
    logger: str
    message: str
    correlation_id: str = ""
    layer: str = ""
    operation: str = ""
    error_code: str = ""
    context: Dict[str, Any] = field(default_factory=dict)
    exception: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, excluding empty values."""
        d = asdict(self)
        return {k: v for k, v in d.items() if v is not None and v != "" and v != {}}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)

    def to_text(self) -> str:
        parts = [self.timestamp, self.level.upper(), self.logger, self.message]
        if self.error_code:
            parts.append(f"[{self.error_code}]")
        parts.extend(f"{k}={v}" for k, v in sorted(self.context.items()))
        return " ".join(parts)


class StructuredHandler(logging.Handler):
    """Logging handler that outputs structured JSON (or text) lines."""

    def __init__(self, stream: Any = None, fmt: str = "json"):
        super().__init__()
        self.stream = stream
        self.fmt = fmt

    def emit(self, record: logging.LogRecord) -> None:
        try:
            event = LogEvent(
                timestamp=datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
                level=record.levelname.lower(),
                logger=record.name,
                message=record.getMessage(),
                correlation_id=correlation_id_var.get(),
                layer=getattr(record, "layer", ""),
                operation=getattr(record, "operation", ""),
                error_code=getattr(record, "error_code", ""),
                context=getattr(record, "context", {}),
            )

            if record.exc_info:
                event.exception = "".join(traceback.format_exception(*record.exc_info))

            line = event.to_text() if self.fmt == "text" else event.to_json()
            stream = self.stream if self.stream is not None else sys.stderr
            stream.write(line + "\n")
            stream.flush()
        except Exception:
            self.handleError(record)


class DiceLogger:
    """
    Structured logger for one component.

    Includes the correlation id and layer in every event; keyword arguments
    become the event context.
    """

    def __init__(self, name: str, layer: Layer, level: Optional[LogLevel] = None, fmt: Optional[str] = None):
        from dicenft.config import get_config

        obs = get_config().observability
        level = level or LogLevel(obs.log_level.get())
        fmt = fmt or obs.log_format.get()

        self.name = name
        self.layer = layer
        self._logger = logging.getLogger(f"dicenft.{layer.value}.{name}")
        self._logger.setLevel(getattr(logging, level.value.upper()))

        if not any(isinstance(h, StructuredHandler) for h in self._logger.handlers):
            self._logger.addHandler(StructuredHandler(fmt=fmt))

    def _log(
        self,
        level: int,
        message: str,
        operation: str = "",
        error_code: str = "",
        exc_info: bool = False,
        **context: Any,
    ) -> None:
        extra = {
            "layer": self.layer.value,
            "operation": operation,
            "error_code": error_code,
            "context": context,
        }
        self._logger.log(level, message, extra=extra, exc_info=exc_info)

    def debug(self, message: str, **context: Any) -> None:
        self._log(logging.DEBUG, message, **context)

    def info(self, message: str, **context: Any) -> None:
        self._log(logging.INFO, message, **context)

    def warning(self, message: str, **context: Any) -> None:
        self._log(logging.WARNING, message, **context)


def generate_correlation_id() -> str:
    return f"corr-{uuid.uuid4().hex[:12]}"


def get_correlation_id() -> str:
    """Get the current correlation ID, creating one if unset."""
    cid = correlation_id_var.get()
    if not cid:
        cid = generate_correlation_id()
        correlation_id_var.set(cid)
    return cid


def get_logger(name: str, layer: Layer) -> DiceLogger:
    return DiceLogger(name, layer)


# =============================================================================
# AUDIT TRAIL
# =============================================================================

GENESIS_HASH = "genesis"


@dataclass
class AuditEvent:
    """One entry of the audit trail."""
    event_id: str
    timestamp: str
    actor: str
    action: str
    token_id: str
    outcome: str  # success, denied
    correlation_id: str = ""
    details: Dict[str, Any] = field(default_factory=dict)
    previous_hash: str = GENESIS_HASH
    event_hash: str = ""

    def compute_hash(self) -> str:
        body = {k: v for k, v in asdict(self).items() if k != "event_hash"}
        data = json.dumps(body, sort_keys=True, default=str)
        return hashlib.sha256(data.encode("utf-8")).hexdigest()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class AuditLogger:
    """
    Append-only, hash-chained audit trail.

    Events are kept in memory for export and also emitted through the
    component logger.
    """

    def __init__(self, logger: DiceLogger):
        self._logger = logger
        self._events: List[AuditEvent] = []
        self._last_hash = GENESIS_HASH
        self._lock = threading.Lock()

    def log(
        self,
        actor: str,
        action: str,
        token_id: str,
        outcome: str,
        level: int = logging.INFO,
        **details: Any,
    ) -> AuditEvent:
        with self._lock:
            event = AuditEvent(
                event_id=uuid.uuid4().hex,
                timestamp=datetime.now(timezone.utc).isoformat(),
                actor=actor,
                action=action,
                token_id=token_id,
                outcome=outcome,
                correlation_id=get_correlation_id(),
                details=details,
                previous_hash=self._last_hash,
            )
            event.event_hash = event.compute_hash()
            self._last_hash = event.event_hash
            self._events.append(event)

        self._logger._log(
            level,
            f"AUDIT: {action} on token/{token_id} {outcome}",
            operation="audit",
            **event.to_dict(),
        )
        return event

    @property
    def events(self) -> List[AuditEvent]:
        with self._lock:
            return list(self._events)

    def verify_chain(self) -> Tuple[bool, Optional[int]]:
        """Returns (ok, index of first broken event)."""
        with self._lock:
            previous = GENESIS_HASH
            for i, event in enumerate(self._events):
                if event.previous_hash != previous or event.compute_hash() != event.event_hash:
                    return False, i
                previous = event.event_hash
        return True, None

    def export(self) -> List[Dict[str, Any]]:
        return [e.to_dict() for e in self.events]
