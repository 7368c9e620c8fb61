"""
models/group.py — A group is one ledger: its expenses and members.

The owner cannot be deleted while the group exists (RESTRICT).
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from splitbook.app.extensions import db


class Group(db.Model):
    __tablename__ = "groups"
    __table_args__ = (
        CheckConstraint("LENGTH(TRIM(name)) > 0", name="ck_groups_name_nonempty"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    owner_user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    owner: Mapped["User"] = relationship(foreign_keys=[owner_user_id])  # noqa: F821
    # Join order; the default participant order for equal splits.
    memberships: Mapped[list["Membership"]] = relationship(  # noqa: F821
        back_populates="group",
        order_by="Membership.id",
    )
    expenses: Mapped[list["Expense"]] = relationship(back_populates="group")  # noqa: F821

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Group {self.id} {self.name!r}>"
