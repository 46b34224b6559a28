"""
Audit trail for sign and verify operations.

The core never records anything itself; callers (the CLI, an HTTP layer)
build an ``AuditEvent`` after each operation and hand it to a sink.
Sink failures are logged and never break the operation being audited.
"""

import json
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from imagesign.media.native import VerificationResult
from imagesign.payload import format_timestamp, sha256_hex

logger = logging.getLogger(__name__)

AUDIT_LOGGER_NAME = "imagesign.audit"
ANONYMOUS = "anonymous"


class AuditEventKind(str, Enum):
    SIGN = "SIGN"
    VERIFY = "VERIFY"
    VERIFY_SUCCESS = "VERIFY_SUCCESS"
    VERIFY_FAIL = "VERIFY_FAIL"


@dataclass
class AuditEvent:
    """One audit record."""

    kind: AuditEventKind
    identity: str
    content_hash: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: str = field(default_factory=lambda: format_timestamp(datetime.now(timezone.utc)))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "event": self.kind.value,
            "userId": self.identity,
            "imageHash": self.content_hash,
            "details": self.metadata,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"), default=str)


class AuditSink(ABC):
    """Abstract interface for audit event destinations."""

    @abstractmethod
    def record(self, event: AuditEvent) -> None:
        """Persist or forward one event."""
        pass


class LoggingAuditSink(AuditSink):
    """Writes each event as a JSON line to the ``imagesign.audit`` logger."""

    def __init__(self, logger_name: str = AUDIT_LOGGER_NAME, level: int = logging.INFO):
        self._logger = logging.getLogger(logger_name)
        self._level = level

    def record(self, event: AuditEvent) -> None:
        self._logger.log(self._level, event.to_json())


class MemoryAuditSink(AuditSink):
    """Keeps events in a list. Suitable for tests and development."""

    def __init__(self):
        self.events: List[AuditEvent] = []

    def record(self, event: AuditEvent) -> None:
        self.events.append(event)

    def clear(self) -> None:
        self.events.clear()


def _emit(sink: AuditSink, event: AuditEvent) -> Optional[AuditEvent]:
    try:
        sink.record(event)
        return event
    except Exception as e:
        logger.error(f"Failed to log audit event {event.kind.value}: {e}")
        return None


def record_sign(sink: AuditSink, identity: str, signed_data: bytes, **metadata) -> Optional[AuditEvent]:
    """Record a completed sign operation."""
    event = AuditEvent(
        kind=AuditEventKind.SIGN,
        identity=identity,
        content_hash=sha256_hex(signed_data),
        metadata=metadata,
    )
    return _emit(sink, event)


def record_verify(
    sink: AuditSink, result: VerificationResult, data: bytes, **metadata
) -> Optional[AuditEvent]:
    """Record a verify attempt as VERIFY_SUCCESS or VERIFY_FAIL."""
    details = {"verified": result.verified, **metadata}
    if result.error:
        details["error"] = result.error
    event = AuditEvent(
        kind=AuditEventKind.VERIFY_SUCCESS if result.verified else AuditEventKind.VERIFY_FAIL,
        identity=result.email or ANONYMOUS,
        content_hash=sha256_hex(data),
        metadata=details,
    )
    return _emit(sink, event)
