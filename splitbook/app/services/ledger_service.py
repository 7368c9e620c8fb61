"""
services/ledger_service.py — Ledger facade: expenses, summaries, overall balances.

Invariants enforced here:
  - sum(splits.amount_minor) == expense.amount_minor for every stored expense.
    Splits only ever come from split_engine, and an amount update always
    re-runs the split over the expense's stored participant order.
  - An expense and its splits are written and deleted as one unit. Each
    write runs in a savepoint; a database failure rolls the savepoint back
    and surfaces as PERSISTENCE_FAILURE (500). Nothing is retried here.
  - The payer and every participant must exist (REFERENCE_NOT_FOUND, 404)
    and be members of the group (PAYER_NOT_MEMBER / PARTICIPANT_NOT_MEMBER, 422).

Authorization rules:
  - Create, list, get: caller must be a group member (FORBIDDEN, 403)
  - Update, delete:    caller must be the payer OR the group owner

After every successful create, update or delete the change is reported to
activity_service. That write is best-effort and cannot fail the operation.

Layer rules:
  - No Flask imports. Receives plain ints and dicts.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from splitbook.app.errors import AppError, ErrorCode
from splitbook.app.models.activity_log import ActivityAction, ActivityEntityType
from splitbook.app.models.expense import Expense
from splitbook.app.models.split import Split
from splitbook.app.money import Money
from splitbook.app.services import (
    activity_service,
    balance_service,
    group_service,
    settlement_engine,
    split_engine,
    user_service,
)

logger = logging.getLogger(__name__)


# ── Private helpers ────────────────────────────────────────────────────────

def _get_expense_or_404(expense_id: int, session: Session) -> Expense:
    """Returns the Expense or raises EXPENSE_NOT_FOUND (404)."""
    expense = session.get(Expense, expense_id)
    if expense is None:
        raise AppError(
            ErrorCode.EXPENSE_NOT_FOUND,
            f"Expense {expense_id} does not exist.",
            404,
        )
    return expense


def _validate_participant_list(participant_ids: list[int]) -> None:
    """Raises INVALID_PARTICIPANTS (400) for an empty list or repeated ids."""
    if not participant_ids:
        raise AppError(
            ErrorCode.INVALID_PARTICIPANTS,
            "An expense needs at least one participant.",
            400,
            field="participant_ids",
        )

    seen: set[int] = set()
    for uid in participant_ids:
        if uid in seen:
            raise AppError(
                ErrorCode.INVALID_PARTICIPANTS,
                f"User {uid} appears more than once in participant_ids.",
                400,
                field="participant_ids",
            )
        seen.add(uid)


def _validate_references(
        group_id: int,
        payer_id: int,
        participant_ids: list[int],
        member_ids: list[int],
        session: Session,
) -> None:
    """
    Checks that the payer and participants exist, then that they are members.

    Existence is checked first so an unknown id is reported as
    REFERENCE_NOT_FOUND rather than as a membership problem.
    """
    if not user_service.exists(payer_id, session):
        raise AppError(
            ErrorCode.REFERENCE_NOT_FOUND,
            f"Payer {payer_id} does not exist.",
            404,
            field="paid_by_user_id",
        )
    known = user_service.existing_user_ids(participant_ids, session)
    for uid in participant_ids:
        if uid not in known:
            raise AppError(
                ErrorCode.REFERENCE_NOT_FOUND,
                f"Participant {uid} does not exist.",
                404,
                field="participant_ids",
            )

    member_set = set(member_ids)
    if payer_id not in member_set:
        raise AppError(
            ErrorCode.PAYER_NOT_MEMBER,
            f"User {payer_id} is not a member of group {group_id}.",
            422,
            field="paid_by_user_id",
        )
    for uid in participant_ids:
        if uid not in member_set:
            raise AppError(
                ErrorCode.PARTICIPANT_NOT_MEMBER,
                f"User {uid} is not a member of group {group_id}.",
                422,
                field="participant_ids",
            )


def _require_payer_or_owner(expense: Expense, caller_id: int, session: Session, verb: str) -> None:
    group = group_service.get_group_or_404(expense.group_id, session)
    is_payer = (caller_id == expense.paid_by_user_id)
    is_owner = (caller_id == group.owner_user_id)

    if not (is_payer or is_owner):
        raise AppError(
            ErrorCode.FORBIDDEN,
            f"Only the original payer or group owner may {verb} this expense.",
            403,
        )


def _assert_split_sum(expense: Expense) -> None:
    """Raises INTERNAL_ERROR (500) if the stored splits do not add up."""
    total = sum(s.amount_minor for s in expense.splits)
    if total != expense.amount_minor:
        logger.error(
            "split sum mismatch expense=%s amount_minor=%s splits_minor=%s",
            expense.id,
            expense.amount_minor,
            total,
        )
        raise AppError(
            ErrorCode.INTERNAL_ERROR,
            f"Splits of expense {expense.id} sum to {total} minor units "
            f"instead of {expense.amount_minor}.",
            500,
        )


def _refuse_unsettling_former_members(group_id: int, involved: list[int], session: Session) -> None:
    """
    Members leave a group only at a zero balance. Editing or deleting an
    expense they took part in must keep them there: MEMBER_HAS_BALANCE (422).
    Runs after the change is flushed, inside its savepoint.
    """
    current = set(balance_service.get_member_ids(group_id, session))
    former = [uid for uid in dict.fromkeys(involved) if uid not in current]
    if not former:
        return

    balances = balance_service.compute_balances(group_id, session)
    for uid in former:
        if balances.get(uid, 0):
            raise AppError(
                ErrorCode.MEMBER_HAS_BALANCE,
                f"User {uid} has left group {group_id}; this change would leave them "
                f"with a balance of {Money(balances[uid])}.",
                422,
            )


def _persistence_failure(operation: str, exc: SQLAlchemyError) -> AppError:
    logger.error("%s failed: %s", operation, exc)
    return AppError(
        ErrorCode.PERSISTENCE_FAILURE,
        f"Could not {operation}. No changes were saved.",
        500,
    )


def _expense_details(expense: Expense) -> dict:
    """Audit payload: who paid, who shares, and how much each owes."""
    return {
        "description": expense.description,
        "paid_by_user_id": expense.paid_by_user_id,
        "amount": str(Money(expense.amount_minor)),
        "splits": [
            {
                "user_id": s.user_id,
                "amount": str(Money(s.amount_minor)),
            }
            for s in expense.splits
        ],
    }


def _record(session: Session, action: str, expense: Expense, caller_id: int, details: dict) -> None:
    activity_service.record_activity(
        session,
        action=action,
        entity_type=ActivityEntityType.EXPENSE,
        entity_id=expense.id,
        group_id=expense.group_id,
        actor_user_id=caller_id,
        details=details,
    )


# ── Expenses ───────────────────────────────────────────────────────────────

def create_expense(
        group_id: int,
        caller_id: int,
        data: dict,
        session: Session,
) -> Expense:
    """
    Records a new expense split equally among its participants.

    Args:
        group_id:  The group this expense belongs to.
        caller_id: The authenticated user creating the expense.
        data:      {"paid_by_user_id", "amount" (minor units), "description",
                    "participant_ids" (optional)}. Without participant_ids
                    every current member shares, in join order.

    Returns:
        The new Expense with its splits loaded.
    """
    group_service.get_group_or_404(group_id, session)
    group_service.require_member(group_id, caller_id, session)

    payer_id: int = data["paid_by_user_id"]
    amount_minor: int = data["amount"]
    description: str = data["description"]

    member_ids = balance_service.get_member_ids(group_id, session)

    participant_ids = data.get("participant_ids")
    if participant_ids is None:
        participant_ids = list(member_ids)
    else:
        participant_ids = list(participant_ids)
        _validate_participant_list(participant_ids)

    _validate_references(group_id, payer_id, participant_ids, member_ids, session)

    shares = split_engine.allocate_shares(amount_minor, participant_ids)

    try:
        with session.begin_nested():
            expense = Expense(
                group_id=group_id,
                paid_by_user_id=payer_id,
                description=description,
                amount_minor=amount_minor,
                splits=[Split(**share) for share in shares],
            )
            session.add(expense)
            session.flush()
    except SQLAlchemyError as exc:
        raise _persistence_failure("create the expense", exc) from exc

    _assert_split_sum(expense)

    logger.info(
        "expense created id=%s group=%s amount=%s participants=%s",
        expense.id,
        group_id,
        Money(amount_minor),
        len(participant_ids),
    )
    _record(session, ActivityAction.CREATE, expense, caller_id, _expense_details(expense))

    return expense


def list_expenses(
        group_id: int,
        caller_id: int,
        session: Session,
) -> list[Expense]:
    """Returns every expense of a group with its splits, newest first."""
    group_service.get_group_or_404(group_id, session)
    group_service.require_member(group_id, caller_id, session)

    stmt = (
        select(Expense)
        .where(Expense.group_id == group_id)
        .options(selectinload(Expense.splits))
        .order_by(Expense.id.desc())
    )
    return list(session.execute(stmt).scalars().all())


def get_expense(
        expense_id: int,
        caller_id: int,
        session: Session,
) -> Expense:
    """Returns a single expense including its splits."""
    expense = _get_expense_or_404(expense_id, session)
    group_service.require_member(expense.group_id, caller_id, session)
    return expense


def update_expense(
        expense_id: int,
        caller_id: int,
        data: dict,
        session: Session,
) -> Expense:
    """
    Partially updates an expense.

    Accepted keys: "description", "paid_by_user_id", "amount" (minor units).
    When "amount" is present the splits are recomputed over the existing
    participants in their stored order and replaced in the same unit, so
    the stored splits always add up to the stored amount.

    Raises:
        AppError(EXPENSE_NOT_FOUND, 404)   — expense does not exist.
        AppError(FORBIDDEN, 403)           — caller is not payer or owner.
        AppError(REFERENCE_NOT_FOUND, 404) — new payer does not exist.
        AppError(PAYER_NOT_MEMBER, 422)    — new payer is not a member.
        AppError(MEMBER_HAS_BALANCE, 422)  — a former member would be left owing or owed.
        AppError(PERSISTENCE_FAILURE, 500) — the write could not complete.
    """
    expense = _get_expense_or_404(expense_id, session)
    group_service.require_member(expense.group_id, caller_id, session)
    _require_payer_or_owner(expense, caller_id, session, "edit")

    if "paid_by_user_id" in data:
        member_ids = balance_service.get_member_ids(expense.group_id, session)
        _validate_references(expense.group_id, data["paid_by_user_id"], [], member_ids, session)

    new_amount = data.get("amount")
    shares = None
    if new_amount is not None:
        shares = split_engine.allocate_shares(new_amount, expense.participant_ids)

    previous_amount = expense.amount_minor
    # balances shift only when the amount or the payer changes
    moves_balances = shares is not None or "paid_by_user_id" in data
    involved = [expense.paid_by_user_id, *expense.participant_ids]

    try:
        with session.begin_nested():
            if "description" in data:
                expense.description = data["description"]

            if "paid_by_user_id" in data:
                expense.paid_by_user_id = data["paid_by_user_id"]

            if shares is not None:
                # old rows must be gone before the new (expense_id, position) pairs go in
                expense.splits.clear()
                session.flush()
                expense.splits.extend(Split(**share) for share in shares)
                expense.amount_minor = new_amount

            expense.updated_at = datetime.now(timezone.utc)
            session.flush()
            if moves_balances:
                _refuse_unsettling_former_members(expense.group_id, involved, session)
    except SQLAlchemyError as exc:
        raise _persistence_failure("update the expense", exc) from exc

    _assert_split_sum(expense)

    logger.info(
        "expense updated id=%s group=%s amount=%s resplit=%s",
        expense.id,
        expense.group_id,
        Money(expense.amount_minor),
        shares is not None,
    )
    details = _expense_details(expense)
    if shares is not None:
        details["previous_amount"] = str(Money(previous_amount))
    _record(session, ActivityAction.UPDATE, expense, caller_id, details)

    return expense


def delete_expense(
        expense_id: int,
        caller_id: int,
        session: Session,
) -> None:
    """
    Removes an expense and all of its splits.

    Once deleted, the expense no longer contributes to any balance, so the
    group's balances return to what they were before it was created.

    Raises:
        AppError(EXPENSE_NOT_FOUND, 404)   — expense does not exist.
        AppError(FORBIDDEN, 403)           — caller is not payer or owner.
        AppError(MEMBER_HAS_BALANCE, 422)  — a former member would be left owing or owed.
        AppError(PERSISTENCE_FAILURE, 500) — the delete could not complete.
    """
    expense = _get_expense_or_404(expense_id, session)
    group_service.require_member(expense.group_id, caller_id, session)
    _require_payer_or_owner(expense, caller_id, session, "delete")

    details = _expense_details(expense)
    involved = [expense.paid_by_user_id, *expense.participant_ids]

    try:
        with session.begin_nested():
            session.delete(expense)
            session.flush()
            _refuse_unsettling_former_members(expense.group_id, involved, session)
    except SQLAlchemyError as exc:
        raise _persistence_failure("delete the expense", exc) from exc

    logger.info("expense deleted id=%s group=%s", expense.id, expense.group_id)
    _record(session, ActivityAction.DELETE, expense, caller_id, details)


# ── Balances ───────────────────────────────────────────────────────────────

def _named(user_id: int, names: dict[int, str]) -> str:
    return names.get(user_id, f"user_{user_id}")


def group_summary(
        group_id: int,
        caller_id: int,
        session: Session,
) -> dict:
    """
    Net positions plus the settlement that clears them.

    Each member entry lists whom they should pay ("owes") and who should
    pay them ("owed_by"), both taken from the simplified transfers.

    Raises:
        AppError(GROUP_NOT_FOUND, 404) — group does not exist.
        AppError(FORBIDDEN, 403)       — caller is not a member.
        AppError(INTERNAL_ERROR, 500)  — stored balances do not sum to zero.
    """
    group_service.get_group_or_404(group_id, session)
    group_service.require_member(group_id, caller_id, session)

    balances = balance_service.compute_balances(group_id, session)
    balance_service.check_conservation(balances, group_id)
    transfers = settlement_engine.simplify_debts(balances)

    names = user_service.get_names(balances.keys(), session)

    owes: dict[int, list[dict]] = {uid: [] for uid in balances}
    owed_by: dict[int, list[dict]] = {uid: [] for uid in balances}
    simplified_debts = []
    for t in transfers:
        amount = str(Money(t["amount_minor"]))
        owes[t["from_user_id"]].append({
            "user_id": t["to_user_id"],
            "name": _named(t["to_user_id"], names),
            "amount": amount,
        })
        owed_by[t["to_user_id"]].append({
            "user_id": t["from_user_id"],
            "name": _named(t["from_user_id"], names),
            "amount": amount,
        })
        simplified_debts.append({
            "from_user_id": t["from_user_id"],
            "from_name": _named(t["from_user_id"], names),
            "to_user_id": t["to_user_id"],
            "to_name": _named(t["to_user_id"], names),
            "amount": amount,
        })

    balance_list = [
        {
            "user_id": uid,
            "name": _named(uid, names),
            "balance": str(Money(bal)),
            "owes": owes[uid],
            "owed_by": owed_by[uid],
        }
        for uid, bal in balances.items()
    ]

    return {
        "group_id": group_id,
        "balances": balance_list,
        "simplified_debts": simplified_debts,
        "balance_sum": str(Money(sum(balances.values()))),
    }


def user_overall_balance(
        user_id: int,
        caller_id: int,
        session: Session,
) -> dict:
    """
    Folds a user's net balance across every group they belong to.

    Callers may see their own overall balance, or that of anyone they share
    at least one group with.

    Raises:
        AppError(USER_NOT_FOUND, 404) — user does not exist.
        AppError(FORBIDDEN, 403)      — caller shares no group with the user.
        AppError(INTERNAL_ERROR, 500)  — a group's balances do not sum to zero.
    """
    display_name = user_service.name(user_id, session)

    if caller_id != user_id and not user_service.shares_group(caller_id, user_id, session):
        raise AppError(
            ErrorCode.FORBIDDEN,
            f"You do not share a group with user {user_id}.",
            403,
        )

    overall = Money.zero()
    breakdown = []
    for group in user_service.get_user_groups(user_id, session):
        balances = balance_service.compute_balances(group.id, session)
        balance_service.check_conservation(balances, group.id)
        balance = Money(balances.get(user_id, 0))
        overall = overall + balance
        breakdown.append({
            "group_id": group.id,
            "group_name": group.name,
            "balance": str(balance),
        })

    return {
        "user_id": user_id,
        "name": display_name,
        "overall_balance": str(overall),
        "groups": breakdown,
    }
