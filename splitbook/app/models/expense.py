"""
models/expense.py — One payment made by a group member on behalf of others.

The amount is an integer count of minor units, so no float or NUMERIC
rounding ever touches it. The splits always sum to it; ledger_service writes
both in one savepoint. Deleting an expense deletes its splits.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from splitbook.app.extensions import db


class Expense(db.Model):
    __tablename__ = "expenses"
    __table_args__ = (
        CheckConstraint("amount_minor >= 0", name="ck_expenses_amount_non_negative"),
        CheckConstraint("LENGTH(TRIM(description)) > 0", name="ck_expenses_description_nonempty"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    group_id: Mapped[int] = mapped_column(
        ForeignKey("groups.id", ondelete="RESTRICT"), index=True, nullable=False
    )
    paid_by_user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    amount_minor: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    group: Mapped["Group"] = relationship(back_populates="expenses")  # noqa: F821
    payer: Mapped["User"] = relationship(  # noqa: F821
        back_populates="expenses_paid",
        foreign_keys=[paid_by_user_id],
    )
    splits: Mapped[list["Split"]] = relationship(  # noqa: F821
        back_populates="expense",
        cascade="all, delete-orphan",
        order_by="Split.position",
    )

    @property
    def participant_ids(self) -> list[int]:
        """In the order given when the expense was recorded."""
        return [split.user_id for split in self.splits]

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Expense {self.id} group={self.group_id} amount_minor={self.amount_minor}>"
