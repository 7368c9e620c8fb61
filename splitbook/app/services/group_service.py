"""
services/group_service.py — Groups and their member lists.

A group's members are the only users its expenses may name as payer or
participant. Who may do what:

  read the group or its ledger    any member (non-members get 403, not 404)
  add a member                    the owner
  remove a member                 the owner, or the member themself
  delete the group                the owner, once it has no expenses

A member whose balance is not zero cannot be removed, so every non-zero
balance in a group belongs to someone still in it.

Functions take the session explicitly and only flush; routes commit.
get_group_or_404 and require_member are shared with ledger_service.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from splitbook.app.errors import AppError, ErrorCode
from splitbook.app.models.activity_log import ActivityAction, ActivityEntityType
from splitbook.app.models.expense import Expense
from splitbook.app.models.group import Group
from splitbook.app.models.membership import Membership
from splitbook.app.models.user import User
from splitbook.app.money import Money
from splitbook.app.services import activity_service, balance_service

logger = logging.getLogger(__name__)


def get_group_or_404(group_id: int, session: Session) -> Group:
    group = session.get(Group, group_id)
    if group is None:
        raise AppError(ErrorCode.GROUP_NOT_FOUND, f"Group {group_id} does not exist.", 404)
    return group


def _membership(group_id: int, user_id: int, session: Session) -> Membership | None:
    stmt = select(Membership).where(
        Membership.group_id == group_id,
        Membership.user_id == user_id,
    )
    return session.execute(stmt).scalar_one_or_none()


def is_member(group_id: int, user_id: int, session: Session) -> bool:
    return _membership(group_id, user_id, session) is not None


def require_member(group_id: int, user_id: int, session: Session) -> None:
    """FORBIDDEN (403) unless user_id belongs to the group."""
    if not is_member(group_id, user_id, session):
        raise AppError(ErrorCode.FORBIDDEN, f"You are not a member of group {group_id}.", 403)


def _group_header(group: Group) -> dict:
    return {
        "id": group.id,
        "name": group.name,
        "owner_user_id": group.owner_user_id,
        "created_at": group.created_at.isoformat(),
    }


def _group_with_members(group: Group, members: list[User]) -> dict:
    result = _group_header(group)
    result["members"] = [{"id": m.id, "username": m.username} for m in members]
    return result


def _log_membership_change(session: Session, group: Group, actor_id: int, **change) -> None:
    # Membership changes are recorded as updates of the group.
    activity_service.record_activity(
        session,
        action=ActivityAction.UPDATE,
        entity_type=ActivityEntityType.GROUP,
        entity_id=group.id,
        group_id=group.id,
        actor_user_id=actor_id,
        details={"name": group.name, **change},
    )


def create_group(name: str, owner_id: int, session: Session) -> dict:
    """The creator owns the group and is its first member."""
    group = Group(name=name, owner_user_id=owner_id)
    session.add(group)
    session.flush()

    session.add(Membership(user_id=owner_id, group_id=group.id))
    session.flush()

    logger.info("group created id=%s owner=%s", group.id, owner_id)
    activity_service.record_activity(
        session,
        action=ActivityAction.CREATE,
        entity_type=ActivityEntityType.GROUP,
        entity_id=group.id,
        group_id=group.id,
        actor_user_id=owner_id,
        details={"name": group.name},
    )

    owner = session.get(User, owner_id)
    return _group_with_members(group, [owner] if owner else [])


def list_groups(user_id: int, session: Session) -> list[dict]:
    """Groups the user belongs to, earliest joined first."""
    stmt = (
        select(Group)
        .join(Membership, Membership.group_id == Group.id)
        .where(Membership.user_id == user_id)
        .order_by(Membership.id)
    )
    return [_group_header(group) for group in session.execute(stmt).scalars().all()]


def get_group(group_id: int, caller_id: int, session: Session) -> dict:
    group = get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)
    return _group_with_members(group, balance_service.get_members(group_id, session))


def add_member(group_id: int, caller_id: int, target_user_id: int, session: Session) -> dict:
    """
    Owner only. Errors: GROUP_NOT_FOUND / USER_NOT_FOUND (404),
    FORBIDDEN (403), ALREADY_MEMBER (409).
    """
    group = get_group_or_404(group_id, session)
    if caller_id != group.owner_user_id:
        raise AppError(ErrorCode.FORBIDDEN, "Only the group owner may add members.", 403)

    newcomer = session.get(User, target_user_id)
    if newcomer is None:
        raise AppError(ErrorCode.USER_NOT_FOUND, f"User {target_user_id} does not exist.", 404)
    if is_member(group_id, target_user_id, session):
        raise AppError(
            ErrorCode.ALREADY_MEMBER,
            f"User {target_user_id} is already a member of group {group_id}.",
            409,
        )

    membership = Membership(user_id=target_user_id, group_id=group_id)
    session.add(membership)
    session.flush()

    logger.info("member added group=%s user=%s", group_id, target_user_id)
    _log_membership_change(session, group, caller_id, added_user_id=target_user_id)

    return {
        "group_id": group_id,
        "user_id": target_user_id,
        "username": newcomer.username,
        "joined_at": membership.joined_at.isoformat() if membership.joined_at else None,
    }


def remove_member(group_id: int, caller_id: int, target_user_id: int, session: Session) -> None:
    """
    Errors: GROUP_NOT_FOUND (404), FORBIDDEN (403), USER_NOT_FOUND (404) when
    the target is not in the group, MEMBER_HAS_BALANCE (422).
    """
    group = get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)

    if caller_id not in (group.owner_user_id, target_user_id):
        raise AppError(
            ErrorCode.FORBIDDEN,
            "You may only remove yourself from a group unless you are the owner.",
            403,
        )

    membership = _membership(group_id, target_user_id, session)
    if membership is None:
        raise AppError(
            ErrorCode.USER_NOT_FOUND,
            f"User {target_user_id} is not a member of group {group_id}.",
            404,
        )

    outstanding = balance_service.compute_balances(group_id, session).get(target_user_id, 0)
    if outstanding:
        raise AppError(
            ErrorCode.MEMBER_HAS_BALANCE,
            f"User {target_user_id} has an outstanding balance of {Money(outstanding)} "
            f"in group {group_id} and cannot be removed.",
            422,
        )

    session.delete(membership)
    session.flush()

    logger.info("member removed group=%s user=%s", group_id, target_user_id)
    _log_membership_change(session, group, caller_id, removed_user_id=target_user_id)


def delete_group(group_id: int, caller_id: int, session: Session) -> None:
    """
    Owner only. A group with any expense is refused with GROUP_HAS_EXPENSES
    (422); without expenses every balance is zero, so nothing owed is lost.
    Errors otherwise: GROUP_NOT_FOUND (404), FORBIDDEN (403).
    """
    group = get_group_or_404(group_id, session)
    if caller_id != group.owner_user_id:
        raise AppError(ErrorCode.FORBIDDEN, "Only the group owner may delete the group.", 403)

    has_expenses = session.execute(
        select(Expense.id).where(Expense.group_id == group_id).limit(1)
    ).first()
    if has_expenses is not None:
        raise AppError(
            ErrorCode.GROUP_HAS_EXPENSES,
            f"Group {group_id} still has expenses; delete them before the group.",
            422,
        )

    name = group.name
    for membership in list(group.memberships):
        session.delete(membership)
    session.delete(group)
    session.flush()

    logger.info("group deleted id=%s owner=%s", group_id, caller_id)
    activity_service.record_activity(
        session,
        action=ActivityAction.DELETE,
        entity_type=ActivityEntityType.GROUP,
        entity_id=group_id,
        group_id=group_id,
        actor_user_id=caller_id,
        details={"name": name},
    )
