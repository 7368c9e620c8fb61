"""
services/auth_service.py — Ledger participants: sign-up, log-in, who-am-I.

Registration is the only way a user enters the participant registry, so it
also writes a user activity entry. Access tokens are HS256 JWTs whose
subject is the user id; there are no refresh tokens, a client logs in again
once JWT_ACCESS_TOKEN_EXPIRES has passed.

Passwords are bcrypt-hashed with BCRYPT_LOG_ROUNDS and never logged.
No Flask request or g access here; current_app is read for config only.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timezone

import bcrypt
import jwt
from flask import current_app
from sqlalchemy import select
from sqlalchemy.orm import Session

from splitbook.app.errors import AppError, ErrorCode
from splitbook.app.models.activity_log import ActivityAction, ActivityEntityType
from splitbook.app.models.user import User
from splitbook.app.services import activity_service
from splitbook.app.services.user_service import build_user_dict, get_user_or_404

logger = logging.getLogger(__name__)


def _issue_token(user_id: int) -> str:
    issued = datetime.now(timezone.utc)
    claims = {
        "sub": str(user_id),
        "iat": issued,
        "exp": issued + current_app.config["JWT_ACCESS_TOKEN_EXPIRES"],
        "jti": secrets.token_hex(8),
    }
    return jwt.encode(
        claims,
        current_app.config["JWT_SECRET_KEY"],
        algorithm=current_app.config.get("JWT_ALGORITHM", "HS256"),
    )


def _hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=current_app.config.get("BCRYPT_LOG_ROUNDS", 12))
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def _password_matches(user: User | None, password: str) -> bool:
    if user is None:
        return False
    return bcrypt.checkpw(password.encode("utf-8"), user.password_hash.encode("utf-8"))


def _find_user(session: Session, **criteria) -> User | None:
    return session.execute(select(User).filter_by(**criteria)).scalar_one_or_none()


def _signed_in(user: User) -> dict:
    return {"user": build_user_dict(user), "access_token": _issue_token(user.id)}


def register_user(
        username: str,
        email: str,
        password: str,
        session: Session,
) -> dict:
    """
    Adds a participant and signs them in.

    Raises:
      AppError(DUPLICATE_EMAIL, 409)
      AppError(DUPLICATE_USERNAME, 409)

    Returns: {"user": {...}, "access_token": "..."}
    """
    if _find_user(session, email=email) is not None:
        raise AppError(
            ErrorCode.DUPLICATE_EMAIL,
            f"The email address '{email}' is already registered.",
            409,
            field="email",
        )
    if _find_user(session, username=username) is not None:
        raise AppError(
            ErrorCode.DUPLICATE_USERNAME,
            f"The username '{username}' is already taken.",
            409,
            field="username",
        )

    user = User(username=username, email=email, password_hash=_hash_password(password))
    session.add(user)
    session.flush()  # token subject needs the id

    logger.info("user registered id=%s", user.id)
    activity_service.record_activity(
        session,
        action=ActivityAction.CREATE,
        entity_type=ActivityEntityType.USER,
        entity_id=user.id,
        actor_user_id=user.id,
        details={"name": user.username},
    )
    return _signed_in(user)


def login_user(username: str, password: str, session: Session) -> dict:
    """
    Raises AppError(INVALID_CREDENTIALS, 401) for an unknown username and for
    a wrong password alike.
    """
    user = _find_user(session, username=username)
    if not _password_matches(user, password):
        raise AppError(
            ErrorCode.INVALID_CREDENTIALS,
            "The username or password is incorrect.",
            401,
        )
    return _signed_in(user)


def get_current_user(user_id: int, session: Session) -> dict:
    """Profile of the token's subject; USER_NOT_FOUND (404) if it was removed."""
    return build_user_dict(get_user_or_404(user_id, session))
