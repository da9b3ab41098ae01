"""
intake/audit.py

Audit logging helpers.

Goals:
- Capture WHO did WHAT to WHICH entity, with BEFORE/AFTER snapshots.
- Store an email snapshot to preserve identity even if the user is later removed.
- Store IP address for traceability.

IMPORTANT:
- This helper ADDS AuditLog entries to the current SQLAlchemy session.
  The caller controls transaction boundaries (commit/rollback).
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from flask import has_request_context, request
from flask_login import current_user

from .extensions import db
from .models import AuditLog


def _safe_str(value: Any) -> Optional[str]:
    """Stable string representation for JSON and DB storage."""
    if value is None:
        return None
    try:
        return str(value)
    except Exception:
        return repr(value)


def serialize_model(instance: Any) -> Dict[str, Optional[str]]:
    """
    Snapshot of a model's scalar columns (relationships are not followed).

    Password hashes are never copied into the audit trail.
    """
    data: Dict[str, Optional[str]] = {}
    for column in instance.__table__.columns:
        if column.name == "password_hash":
            continue
        data[column.name] = _safe_str(getattr(instance, column.name))
    return data


def log_action(
    entity: Any,
    action: str,
    *,
    before: Optional[Dict[str, Any]] = None,
    after: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """
    Add an AuditLog entry to the current db session.

    Parameters:
        entity: model instance with .id (flush first for new rows)
        action: CREATE / UPDATE / DELETE / FINISH / CANCEL
        before: dict snapshot (optional)
        after: dict snapshot (optional)
    """
    entity_id = getattr(entity, "id", None)
    if entity_id is None:
        raise ValueError("log_action entity must have an 'id' attribute (after flush).")

    in_request = has_request_context()
    authenticated = in_request and current_user.is_authenticated

    entry = AuditLog(
        user_id=current_user.id if authenticated else None,
        username_snapshot=current_user.email if authenticated else None,
        entity_type=entity.__class__.__name__,
        entity_id=int(entity_id),
        action=str(action),
        before_data=json.dumps(before, ensure_ascii=False) if before else None,
        after_data=json.dumps(after, ensure_ascii=False) if after else None,
        ip_address=request.remote_addr if in_request else None,
    )
    db.session.add(entry)
    return entry


def history(entity_type: str, entity_id: int) -> List[AuditLog]:
    """Audit entries of one entity, oldest first."""
    return (
        AuditLog.query.filter_by(entity_type=entity_type, entity_id=entity_id)
        .order_by(AuditLog.created_at.asc(), AuditLog.id.asc())
        .all()
    )
