"""
middleware/auth_middleware.py — Bearer-token authentication for ledger routes.

@require_auth resolves the caller before the view runs and stores their
user id on flask.g.user_id. It only answers "who is calling" (401);
whether that user may touch a group or expense is decided by the services (403).

  TOKEN_MISSING  — no Authorization header
  TOKEN_INVALID  — not "Bearer <jwt>", bad signature, or no usable subject
  TOKEN_EXPIRED  — signature fine, exp in the past
"""

from __future__ import annotations

import functools
from typing import Callable

import jwt
from flask import current_app, g, request

from splitbook.app.errors import AppError, ErrorCode


def _unauthorized(code: str, message: str) -> AppError:
    return AppError(code, message, 401)


def _bearer_token() -> str:
    header = request.headers.get("Authorization", "")
    if not header:
        raise _unauthorized(
            ErrorCode.TOKEN_MISSING,
            "Authentication required. Send 'Authorization: Bearer <token>'.",
        )

    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip() or " " in token.strip():
        raise _unauthorized(
            ErrorCode.TOKEN_INVALID,
            "Authorization header must look like 'Bearer <token>'.",
        )
    return token.strip()


def _caller_id(token: str) -> int:
    """Verifies the token and returns the user id in its subject claim."""
    try:
        claims = jwt.decode(
            token,
            current_app.config["JWT_SECRET_KEY"],
            algorithms=[current_app.config.get("JWT_ALGORITHM", "HS256")],
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise _unauthorized(ErrorCode.TOKEN_EXPIRED, "Access token expired. Log in again.")
    except jwt.InvalidTokenError:
        raise _unauthorized(ErrorCode.TOKEN_INVALID, "Access token is not valid.")

    subject = claims["sub"]
    if not str(subject).isdigit():
        raise _unauthorized(ErrorCode.TOKEN_INVALID, "Access token subject is not a user id.")
    return int(subject)


def require_auth(view: Callable) -> Callable:
    """
    Route decorator: authenticate, then call the view.

        @expenses_bp.route("/expenses/<int:expense_id>", methods=["GET"])
        @require_auth
        def get_expense(expense_id):
            ... g.user_id ...
    """
    @functools.wraps(view)
    def wrapper(*args, **kwargs):
        g.user_id = _caller_id(_bearer_token())
        return view(*args, **kwargs)

    return wrapper
