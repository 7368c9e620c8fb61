"""
services/activity_service.py — Activity (audit) log.

record_activity() is a best-effort side channel: it writes inside its own
savepoint, and if that write fails the savepoint is rolled back, a warning is
logged, and the caller carries on. A failed audit entry never undoes or
blocks the ledger change it describes.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from splitbook.app.models.activity_log import ActivityLog
from splitbook.app.models.membership import Membership
from splitbook.app.services import group_service

logger = logging.getLogger(__name__)

_PAST_TENSE = {
    "CREATE": "created",
    "UPDATE": "updated",
    "DELETE": "deleted",
}


def record_activity(
        session: Session,
        action: str,
        entity_type: str,
        entity_id: int | None = None,
        group_id: int | None = None,
        actor_user_id: int | None = None,
        details: dict | None = None,
) -> ActivityLog | None:
    """
    Appends an activity entry. Returns None if the write failed.
    """
    entry = ActivityLog(
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        group_id=group_id,
        actor_user_id=actor_user_id,
        details=details,
    )
    try:
        with session.begin_nested():
            session.add(entry)
            session.flush()
    except SQLAlchemyError:
        logger.warning(
            "activity log write failed action=%s entity=%s:%s",
            action,
            entity_type,
            entity_id,
            exc_info=True,
        )
        return None

    return entry


def activity_type(entry: ActivityLog) -> str:
    """e.g. ("CREATE", "expense") -> "expense_created"."""
    verb = _PAST_TENSE.get(entry.action, entry.action.lower())
    return f"{entry.entity_type}_{verb}"


def _describe(entry: ActivityLog, details: dict) -> str | None:
    """e.g. "Created expense: Dinner", "Created group: Trip"."""
    label = details.get("description") or details.get("name")
    if not label:
        return None
    verb = _PAST_TENSE.get(entry.action, entry.action.lower()).capitalize()
    return f"{verb} {entry.entity_type}: {label}"


def serialize_activity(entry: ActivityLog) -> dict:
    details = entry.details or {}
    kind = activity_type(entry)
    description = _describe(entry, details)

    return {
        "id": entry.id,
        "type": kind,
        "description": description,
        "entity_id": entry.entity_id,
        "group_id": entry.group_id,
        "actor_user_id": entry.actor_user_id,
        "details": details,
        "timestamp": entry.created_at.isoformat() if entry.created_at else None,
    }


def list_activity(
        caller_id: int,
        session: Session,
        group_id: int | None = None,
        limit: int = 50,
        offset: int = 0,
) -> list[dict]:
    """
    Returns activity for the groups the caller belongs to, newest first.

    When group_id is given the group must exist and the caller must be a
    member of it.
    """
    if group_id is not None:
        group_service.get_group_or_404(group_id, session)
        group_service.require_member(group_id, caller_id, session)
        group_filter = ActivityLog.group_id == group_id
    else:
        caller_groups = select(Membership.group_id).where(Membership.user_id == caller_id)
        group_filter = ActivityLog.group_id.in_(caller_groups)

    stmt = (
        select(ActivityLog)
        .where(group_filter)
        .order_by(ActivityLog.id.desc())
        .offset(offset)
        .limit(limit)
    )
    return [serialize_activity(e) for e in session.execute(stmt).scalars().all()]
