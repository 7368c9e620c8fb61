"""
schemas/auth_schema.py — Request schemas for /auth.

The username doubles as the display name shown in balances and settlements,
so it is kept short and free of spaces. Uniqueness of username and email
needs a lookup and is checked by auth_service (DUPLICATE_*, 409).
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, validate

_USERNAME_PATTERN = r"^[a-zA-Z0-9_]+$"

_PASSWORD_MIN_LENGTH = 8


def _check_password(value: str) -> None:
    problems = []
    if len(value) < _PASSWORD_MIN_LENGTH:
        problems.append(f"at least {_PASSWORD_MIN_LENGTH} characters")
    if not any(c.isalpha() for c in value):
        problems.append("a letter")
    if not any(c.isdigit() for c in value):
        problems.append("a digit")
    if problems:
        raise ValidationError("Password needs " + " and ".join(problems) + ".")


class RegisterSchema(Schema):
    """POST /auth/register"""

    username = fields.Str(
        required=True,
        validate=[
            validate.Length(min=3, max=50, error="Username must be 3 to 50 characters."),
            validate.Regexp(
                _USERNAME_PATTERN,
                error="Username may only use letters, digits and underscores.",
            ),
        ],
    )
    email = fields.Email(required=True, validate=validate.Length(max=255))
    password = fields.Str(required=True, load_only=True, validate=_check_password)


class LoginSchema(Schema):
    """POST /auth/login — by username; wrong credentials are INVALID_CREDENTIALS (401)."""

    username = fields.Str(required=True)
    password = fields.Str(required=True, load_only=True)
