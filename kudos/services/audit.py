"""
kudos.services.audit — Audit Trail Helpers
===========================================

Every reviewer mutation writes one ``audit_log`` row inside the same
transaction as the change it describes, carrying before/after snapshots.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from kudos.database.engine import ledger_session
from kudos.database.models import AuditAction, AuditLog
from kudos.errors import NotFound


def row_to_dict(obj: Any) -> dict | None:
    """Convert a SQLAlchemy model instance to a JSON-serializable dict."""
    if obj is None:
        return None
    result = {}
    for col in obj.__table__.columns:
        val = getattr(obj, col.key, None)
        if isinstance(val, datetime):
            val = val.isoformat()
        result[col.name] = val
    return result


def log_audit(
    session: Session,
    *,
    actor_id: str,
    action: str,
    target_table: str,
    target_id: Any,
    before: dict | None,
    after: dict | None,
    reason: str | None = None,
) -> None:
    """Insert a row into audit_log within the current transaction."""
    session.add(AuditLog(
        actor_id=actor_id,
        action=str(action),
        target_table=target_table,
        target_id=str(target_id) if target_id is not None else None,
        before_snapshot=before,
        after_snapshot=after,
        reason=reason,
    ))


# ---------------------------------------------------------------------------
# Generic audited mutations
# ---------------------------------------------------------------------------
def audited_create(
    engine,
    row: Any,
    *,
    table_name: str,
    actor_id: str,
) -> Any:
    """Generic audited CREATE: add -> flush -> log -> commit -> return."""
    with ledger_session(engine) as session:
        session.add(row)
        session.flush()
        session.refresh(row)
        log_audit(
            session,
            actor_id=actor_id,
            action=AuditAction.CREATE,
            target_table=table_name,
            target_id=row.id,
            before=None,
            after=row_to_dict(row),
        )
    return row


def audited_update(
    engine,
    model_cls: type,
    pk: int,
    *,
    table_name: str,
    actor_id: str,
    frozen_keys: tuple[str, ...] = ("id", "created_at"),
    **changes: Any,
) -> Any:
    """Generic audited UPDATE: get -> before -> apply -> log -> commit.

    ``None`` values in *changes* mean "leave unchanged".  Raises
    :class:`NotFound` if the row does not exist.
    """
    with ledger_session(engine) as session:
        obj = session.get(model_cls, pk)
        if obj is None:
            raise NotFound(f"{table_name} {pk} not found.")
        before = row_to_dict(obj)
        for key, value in changes.items():
            if value is not None and hasattr(obj, key) and key not in frozen_keys:
                setattr(obj, key, value)
        session.flush()
        log_audit(
            session,
            actor_id=actor_id,
            action=AuditAction.UPDATE,
            target_table=table_name,
            target_id=obj.id,
            before=before,
            after=row_to_dict(obj),
        )
    return obj
