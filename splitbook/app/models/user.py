"""
models/user.py — Ledger participants.

Every payer and every split participant is a row here. The username is
what balances and settlement suggestions show as the participant's name.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from splitbook.app.extensions import db


class User(db.Model):
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("LENGTH(TRIM(username)) > 0", name="ck_users_username_nonempty"),
        CheckConstraint("email LIKE '%@%'", name="ck_users_email_format"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    username: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    memberships: Mapped[list["Membership"]] = relationship(  # noqa: F821
        back_populates="user",
    )
    # Expenses this user fronted; their own shares live in `splits`.
    expenses_paid: Mapped[list["Expense"]] = relationship(  # noqa: F821
        back_populates="payer",
        foreign_keys="[Expense.paid_by_user_id]",
    )
    splits: Mapped[list["Split"]] = relationship(back_populates="user")  # noqa: F821

    def __repr__(self) -> str:  # pragma: no cover
        return f"<User {self.id} {self.username!r}>"
