"""
services/user_service.py — Participant registry lookups.

The ledger only needs to know whether a user exists and what to call them.
Users are created through auth_service.register_user().
"""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session, aliased

from splitbook.app.errors import AppError, ErrorCode
from splitbook.app.models.group import Group
from splitbook.app.models.membership import Membership
from splitbook.app.models.user import User


def build_user_dict(user: User) -> dict:
    """Serialises a User to a plain dict. No business logic."""
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "created_at": user.created_at.isoformat(),
    }


def get_user_or_404(user_id: int, session: Session) -> User:
    """Returns the User or raises USER_NOT_FOUND (404)."""
    user = session.get(User, user_id)
    if user is None:
        raise AppError(
            ErrorCode.USER_NOT_FOUND,
            f"User {user_id} does not exist.",
            404,
        )
    return user


def exists(user_id: int, session: Session) -> bool:
    return session.get(User, user_id) is not None


def name(user_id: int, session: Session) -> str:
    """Display name of a user. Raises USER_NOT_FOUND (404) if missing."""
    return get_user_or_404(user_id, session).username


def existing_user_ids(user_ids: Iterable[int], session: Session) -> set[int]:
    """Returns the subset of user_ids that exist, in a single query."""
    ids = set(user_ids)
    if not ids:
        return set()
    stmt = select(User.id).where(User.id.in_(ids))
    return set(session.execute(stmt).scalars().all())


def get_names(user_ids: Iterable[int], session: Session) -> dict[int, str]:
    """Returns {user_id: username} for the users that exist."""
    ids = set(user_ids)
    if not ids:
        return {}
    stmt = select(User.id, User.username).where(User.id.in_(ids))
    return {uid: username for uid, username in session.execute(stmt).all()}


def get_user_groups(user_id: int, session: Session) -> list[Group]:
    """Groups the user belongs to, in the order they joined them."""
    stmt = (
        select(Group)
        .join(Membership, Group.id == Membership.group_id)
        .where(Membership.user_id == user_id)
        .order_by(Membership.id.asc())
    )
    return list(session.execute(stmt).scalars().all())


def shares_group(user_id: int, other_user_id: int, session: Session) -> bool:
    """True if both users are members of at least one common group."""
    other = aliased(Membership)
    stmt = (
        select(Membership.group_id)
        .join(other, other.group_id == Membership.group_id)
        .where(
            Membership.user_id == user_id,
            other.user_id == other_user_id,
        )
        .limit(1)
    )
    return session.execute(stmt).first() is not None


def list_users(session: Session) -> list[dict]:
    """Every registered user, oldest account first."""
    users = session.execute(select(User).order_by(User.id)).scalars().all()
    return [build_user_dict(user) for user in users]


def get_user_profile(user_id: int, session: Session) -> dict:
    return build_user_dict(get_user_or_404(user_id, session))


def find_by_username(username: str, session: Session) -> dict:
    user = session.execute(
        select(User).where(User.username == username)
    ).scalar_one_or_none()

    if user is None:
        raise AppError(
            ErrorCode.USER_NOT_FOUND,
            f"User '{username}' not found.",
            404,
        )
    return build_user_dict(user)
