"""
Change log helpers for data-tool actions.

Entries are added to the caller's session and committed with the action they
describe, so a rolled back merge or import leaves no audit row behind.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session, joinedload

from clinic_tools.errors import ValidationError
from clinic_tools.models import ChangeActionType, ChangeLogEntry, db


def _coerce_action(action_type: ChangeActionType | str) -> ChangeActionType:
    if isinstance(action_type, ChangeActionType):
        return action_type
    try:
        return ChangeActionType(action_type)
    except ValueError:
        valid = ", ".join(action.value for action in ChangeActionType)
        raise ValidationError(f"Unknown action type '{action_type}'. Expected one of: {valid}.") from None


def log_change(
    action_type: ChangeActionType | str,
    entity_type: str,
    description: str,
    *,
    entity_id: str | None = None,
    entity_name: str | None = None,
    details: dict[str, Any] | None = None,
    user_id: int | None = None,
    session: Session | None = None,
) -> ChangeLogEntry:
    """Add a change log entry to the session without committing."""

    session = session or db.session
    entry = ChangeLogEntry(
        action_type=_coerce_action(action_type),
        entity_type=entity_type,
        entity_id=entity_id,
        entity_name=entity_name,
        description=description,
        details=details or {},
        user_id=user_id,
    )
    session.add(entry)
    return entry


def get_change_logs(
    *,
    limit: int = 100,
    action_type: ChangeActionType | str | None = None,
    entity_type: str | None = None,
    entity_id: str | None = None,
    session: Session | None = None,
) -> list[ChangeLogEntry]:
    """Return the most recent entries, newest first."""

    session = session or db.session
    if limit < 1:
        raise ValidationError("limit must be a positive integer.")

    query = session.query(ChangeLogEntry).options(joinedload(ChangeLogEntry.user))
    if action_type:
        query = query.filter(ChangeLogEntry.action_type == _coerce_action(action_type))
    if entity_type:
        query = query.filter(ChangeLogEntry.entity_type == entity_type)
    if entity_id:
        query = query.filter(ChangeLogEntry.entity_id == entity_id)
    return query.order_by(ChangeLogEntry.created_at.desc(), ChangeLogEntry.id.desc()).limit(limit).all()


def serialize_change_log(entry: ChangeLogEntry) -> dict[str, Any]:
    payload = entry.to_dict()
    payload["user_email"] = entry.user.email if entry.user else None
    return payload


__all__ = ["log_change", "get_change_logs", "serialize_change_log"]
