"""
services/balance_service.py — Net balance aggregation.

This module is the single place where a member's net position is derived:

    balance(m) = sum(amount_minor of expenses paid by m)
               - sum(amount_minor of splits owed by m)

Positive means the member is owed money, negative means the member owes.
Every split is drawn from exactly one expense whose full amount is credited
to exactly one payer, so the balances of a group always sum to zero. The
group summary checks that before it hands balances to the settlement engine.

Nothing is cached. Balances are recomputed from the expense rows on every
call, so they can never go stale.

Layer rules:
  - No Flask imports.
  - aggregate_balances() is pure and works on any objects exposing
    paid_by_user_id / amount_minor / splits[].user_id / splits[].amount_minor.
  - compute_balances() is the data-access wrapper around it.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from splitbook.app.errors import AppError, ErrorCode
from splitbook.app.models.expense import Expense
from splitbook.app.models.membership import Membership
from splitbook.app.models.user import User

logger = logging.getLogger(__name__)


# ── Data access helpers ────────────────────────────────────────────────────

def get_member_ids(group_id: int, session: Session) -> list[int]:
    """Returns the user_ids of all current members of a group, in join order."""
    stmt = (
        select(Membership.user_id)
        .where(Membership.group_id == group_id)
        .order_by(Membership.id.asc())
    )
    return list(session.execute(stmt).scalars().all())


def get_members(group_id: int, session: Session) -> list[User]:
    """Returns full User objects for all current group members, in join order."""
    stmt = (
        select(User)
        .join(Membership, User.id == Membership.user_id)
        .where(Membership.group_id == group_id)
        .order_by(Membership.id.asc())
    )
    return list(session.execute(stmt).scalars().all())


def get_group_expenses(group_id: int, session: Session) -> list[Expense]:
    """Returns every expense of a group with its splits eagerly loaded, oldest first."""
    stmt = (
        select(Expense)
        .where(Expense.group_id == group_id)
        .options(selectinload(Expense.splits))
        .order_by(Expense.id.asc())
    )
    return list(session.execute(stmt).scalars().all())


# ── Core algorithm ─────────────────────────────────────────────────────────

def aggregate_balances(
        member_ids: Sequence[int],
        expenses: Iterable,
) -> dict[int, int]:
    """
    Computes {user_id: net_balance_minor} for a group.

    Every member appears, in the order given, even with no activity (0).
    A payer or participant who has since left the group is appended after
    the members so that the result still sums to zero.
    """
    balances: dict[int, int] = {member_id: 0 for member_id in member_ids}

    for expense in expenses:
        payer_id = expense.paid_by_user_id
        balances[payer_id] = balances.get(payer_id, 0) + expense.amount_minor

        for split in expense.splits:
            balances[split.user_id] = balances.get(split.user_id, 0) - split.amount_minor

    return balances


def compute_balances(group_id: int, session: Session) -> dict[int, int]:
    """Loads a group's members and expenses and aggregates their net balances."""
    member_ids = get_member_ids(group_id, session)
    expenses = get_group_expenses(group_id, session)
    return aggregate_balances(member_ids, expenses)


def check_conservation(balances: dict[int, int], group_id: int) -> None:
    """
    Raises INTERNAL_ERROR (500) if the group's balances do not sum to zero.

    A non-zero sum means stored expense data is inconsistent (an expense
    whose splits do not add up to its amount). It is never silently repaired.
    """
    balance_sum = sum(balances.values())
    if balance_sum != 0:
        logger.error(
            "balance conservation violated group=%s sum_minor=%s balances=%s",
            group_id,
            balance_sum,
            balances,
        )
        raise AppError(
            ErrorCode.INTERNAL_ERROR,
            f"Balance integrity check failed for group {group_id}: "
            f"balances sum to {balance_sum} minor units instead of 0.",
            500,
        )
