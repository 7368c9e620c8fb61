"""Ledger tables: users, groups, memberships, expenses, splits, activity_log.

Revision: 001_initial_schema

Applied migrations are never edited; schema changes get a new revision.

Amounts are BIGINT minor units. Only splits.expense_id cascades on delete;
every other foreign key is RESTRICT. activity_log has no foreign keys so its
entries survive the rows they describe.
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision: str = "001_initial_schema"
down_revision: str | None = None
branch_labels: tuple | None = None
depends_on: tuple | None = None

# (index name, table, column); names match the models' index=True columns
_INDEXES = (
    ("ix_memberships_group_id", "memberships", "group_id"),
    ("ix_memberships_user_id", "memberships", "user_id"),
    ("ix_expenses_group_id", "expenses", "group_id"),
    ("ix_splits_expense_id", "splits", "expense_id"),
    ("ix_activity_log_group_id", "activity_log", "group_id"),
)


def _id() -> sa.Column:
    return sa.Column("id", sa.Integer(), nullable=False)


def _timestamp(name: str = "created_at") -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())


def _ref(name: str, target: str, fk_name: str, ondelete: str = "RESTRICT") -> sa.Column:
    return sa.Column(
        name,
        sa.Integer(),
        sa.ForeignKey(f"{target}.id", ondelete=ondelete, name=fk_name),
        nullable=False,
    )


def upgrade() -> None:
    op.create_table(
        "users",
        _id(),
        sa.Column("username", sa.String(50), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        _timestamp(),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("username", name="uq_users_username"),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.CheckConstraint("LENGTH(TRIM(username)) > 0", name="ck_users_username_nonempty"),
        sa.CheckConstraint("email LIKE '%@%'", name="ck_users_email_format"),
    )

    op.create_table(
        "groups",
        _id(),
        sa.Column("name", sa.String(100), nullable=False),
        _ref("owner_user_id", "users", "fk_groups_owner"),
        _timestamp(),
        sa.PrimaryKeyConstraint("id", name="pk_groups"),
        sa.CheckConstraint("LENGTH(TRIM(name)) > 0", name="ck_groups_name_nonempty"),
    )

    # id order is join order
    op.create_table(
        "memberships",
        _id(),
        _ref("user_id", "users", "fk_memberships_user"),
        _ref("group_id", "groups", "fk_memberships_group"),
        _timestamp("joined_at"),
        sa.PrimaryKeyConstraint("id", name="pk_memberships"),
        sa.UniqueConstraint("user_id", "group_id", name="uq_memberships_user_group"),
    )

    op.create_table(
        "expenses",
        _id(),
        _ref("group_id", "groups", "fk_expenses_group"),
        _ref("paid_by_user_id", "users", "fk_expenses_payer"),
        sa.Column("description", sa.String(255), nullable=False),
        sa.Column("amount_minor", sa.BigInteger(), nullable=False),
        _timestamp(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_expenses"),
        sa.CheckConstraint("amount_minor >= 0", name="ck_expenses_amount_non_negative"),
        sa.CheckConstraint("LENGTH(TRIM(description)) > 0", name="ck_expenses_description_nonempty"),
    )

    # position is the participant's index at creation
    op.create_table(
        "splits",
        _id(),
        _ref("expense_id", "expenses", "fk_splits_expense", ondelete="CASCADE"),
        _ref("user_id", "users", "fk_splits_user"),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("amount_minor", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_splits"),
        sa.UniqueConstraint("expense_id", "user_id", name="uq_splits_expense_user"),
        sa.UniqueConstraint("expense_id", "position", name="uq_splits_expense_position"),
        sa.CheckConstraint("amount_minor >= 0", name="ck_splits_amount_non_negative"),
    )

    op.create_table(
        "activity_log",
        _id(),
        sa.Column("action", sa.String(20), nullable=False),
        sa.Column("entity_type", sa.String(20), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=True),
        sa.Column("group_id", sa.Integer(), nullable=True),
        sa.Column("actor_user_id", sa.Integer(), nullable=True),
        sa.Column("details", sa.JSON(), nullable=True),
        _timestamp(),
        sa.PrimaryKeyConstraint("id", name="pk_activity_log"),
    )

    for name, table, column in _INDEXES:
        op.create_index(name, table, [column])


def downgrade() -> None:
    for name, table, _ in reversed(_INDEXES):
        op.drop_index(name, table_name=table)
    for table in ("activity_log", "splits", "expenses", "memberships", "groups", "users"):
        op.drop_table(table)
