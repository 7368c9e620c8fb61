"""
models/split.py — A participant's share of one expense.

`position` is the participant's index in the expense's participant list.
Leftover minor units of an equal split go to the lowest positions, and
re-splitting after an amount change reads participants back in this order.
"""

from __future__ import annotations

from sqlalchemy import BigInteger, CheckConstraint, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from splitbook.app.extensions import db


class Split(db.Model):
    __tablename__ = "splits"
    __table_args__ = (
        UniqueConstraint("expense_id", "user_id", name="uq_splits_expense_user"),
        UniqueConstraint("expense_id", "position", name="uq_splits_expense_position"),
        CheckConstraint("amount_minor >= 0", name="ck_splits_amount_non_negative"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    expense_id: Mapped[int] = mapped_column(
        ForeignKey("expenses.id", ondelete="CASCADE"), index=True, nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    amount_minor: Mapped[int] = mapped_column(BigInteger, nullable=False)

    expense: Mapped["Expense"] = relationship(back_populates="splits")  # noqa: F821
    user: Mapped["User"] = relationship(back_populates="splits")  # noqa: F821

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Split expense={self.expense_id} user={self.user_id} amount_minor={self.amount_minor}>"
