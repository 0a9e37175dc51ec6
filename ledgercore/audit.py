from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Protocol

from sqlalchemy.orm import Session

from ledgercore.context import get_correlation_id
from ledgercore.models.audit import AuditLog

audit_entries: list[dict[str, Any]] = []


class AuditSink(Protocol):
    def record(
        self,
        session: Session | None,
        actor_user_id: str,
        entity_type: str,
        entity_id: str,
        action: str,
        before: dict[str, Any] | None,
        after: dict[str, Any] | None,
        correlation_id: str | None = None,
    ) -> None: ...


class InMemoryAuditSink:
    """Keeps audit records in the module-level ``audit_entries`` list."""

    def record(
        self,
        session: Session | None,
        actor_user_id: str,
        entity_type: str,
        entity_id: str,
        action: str,
        before: dict[str, Any] | None,
        after: dict[str, Any] | None,
        correlation_id: str | None = None,
    ) -> None:
        audit_entries.append(
            {
                "id": str(uuid.uuid4()),
                "actor_user_id": actor_user_id,
                "entity_type": entity_type,
                "entity_id": entity_id,
                "action": action,
                "before": before,
                "after": after,
                "correlation_id": correlation_id,
                "occurred_at": datetime.now(timezone.utc).isoformat(),
            }
        )


class DatabaseAuditSink:
    """Persists audit records as ``AuditLog`` rows in their own commit."""

    def record(
        self,
        session: Session | None,
        actor_user_id: str,
        entity_type: str,
        entity_id: str,
        action: str,
        before: dict[str, Any] | None,
        after: dict[str, Any] | None,
        correlation_id: str | None = None,
    ) -> None:
        if session is None:
            raise ValueError("database audit sink requires a session")
        event = AuditLog(
            actor_id=actor_user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            event_metadata={"before": before, "after": after},
            correlation_id=correlation_id,
        )
        session.add(event)
        session.commit()


_sink: AuditSink = InMemoryAuditSink()


def set_audit_sink(sink: AuditSink) -> None:
    global _sink
    _sink = sink


def get_audit_sink() -> AuditSink:
    return _sink


def configure_audit_sink(backend: str) -> AuditSink:
    choice = backend.lower()
    if choice == "database":
        set_audit_sink(DatabaseAuditSink())
    elif choice == "memory":
        set_audit_sink(InMemoryAuditSink())
    else:
        raise ValueError(f"unknown audit backend '{backend}'")
    return _sink


def record(
    actor_user_id: str,
    entity_type: str,
    entity_id: str,
    action: str,
    before: dict[str, Any] | None,
    after: dict[str, Any] | None,
    correlation_id: str | None = None,
    *,
    session: Session | None = None,
) -> None:
    resolved_correlation_id = correlation_id or get_correlation_id()
    _sink.record(
        session,
        actor_user_id,
        entity_type,
        entity_id,
        action,
        before,
        after,
        correlation_id=resolved_correlation_id,
    )
