"""
models/activity_log.py — Activity (audit) log table.

Append-only record of ledger changes. Rows are written best-effort after the
ledger operation succeeds; nothing in the ledger reads them back.
`details` holds the payer, participants and amounts as JSON.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from splitbook.app.extensions import db


class ActivityAction:
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class ActivityEntityType:
    EXPENSE = "expense"
    GROUP = "group"
    USER = "user"


class ActivityLog(db.Model):
    __tablename__ = "activity_log"

    id: Mapped[int] = mapped_column(primary_key=True)

    action: Mapped[str] = mapped_column(String(20), nullable=False)

    entity_type: Mapped[str] = mapped_column(String(20), nullable=False)

    # No FK: the entity (e.g. a deleted expense) may no longer exist.
    entity_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    group_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)

    actor_user_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    details: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<ActivityLog id={self.id} "
            f"action={self.action} "
            f"entity={self.entity_type}:{self.entity_id}>"
        )
