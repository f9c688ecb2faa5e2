"""Fire-and-forget audit trail for version lifecycle changes.

Services schedule events on the session; they are handed to the sinks
only after the transaction commits and are dropped on rollback. Sink
failures are logged and never reach the caller.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from functools import lru_cache
from typing import Any, Protocol

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from intellayer.db.post_commit import register_after_commit
from intellayer.models.common import AuditAction, utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuditEvent:
    action: AuditAction
    tenant_id: str
    entity_type: str
    entity_id: str
    actor_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action.value,
            "tenant_id": self.tenant_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "actor_id": self.actor_id,
            "metadata": self.metadata,
            "occurred_at": self.occurred_at.isoformat(),
        }


class AuditSink(Protocol):
    def emit(self, event: AuditEvent) -> None: ...


class LogAuditSink:
    """Writes each event as one structured log line."""

    def __init__(self) -> None:
        self._log = structlog.get_logger("intellayer.audit")

    def emit(self, event: AuditEvent) -> None:
        payload = event.to_dict()
        action = payload.pop("action")
        self._log.info(action, **payload)


class MemoryAuditSink:
    """Keeps events in a list; for tests and local inspection."""

    def __init__(self) -> None:
        self.events: list[AuditEvent] = []

    def emit(self, event: AuditEvent) -> None:
        self.events.append(event)

    def actions(self) -> list[AuditAction]:
        return [e.action for e in self.events]


class AuditTrail:
    def __init__(self, sinks: list[AuditSink] | None = None) -> None:
        self._sinks: list[AuditSink] = list(sinks) if sinks is not None else [LogAuditSink()]

    def add_sink(self, sink: AuditSink) -> None:
        self._sinks.append(sink)

    def remove_sink(self, sink: AuditSink) -> None:
        self._sinks.remove(sink)

    def publish(self, event: AuditEvent) -> None:
        """Deliver to every sink; one failing sink does not stop the others."""
        for sink in self._sinks:
            try:
                sink.emit(event)
            except Exception:
                logger.exception(
                    "Audit sink %s failed for %s on %s",
                    type(sink).__name__, event.action.value, event.entity_id,
                )

    def publish_after_commit(self, session: AsyncSession, event: AuditEvent) -> None:
        register_after_commit(session, self.publish, event)


@lru_cache
def get_audit_trail() -> AuditTrail:
    """Process-wide trail (cached)."""
    return AuditTrail()
