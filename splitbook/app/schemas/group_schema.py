"""
schemas/group_schema.py — Bodies for creating a ledger group and adding to it.

Only shape is checked here. Whether the user exists, is already in the group,
or the caller owns it is group_service's business.
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, validate


def _not_blank(value: str) -> None:
    if not value.strip():
        raise ValidationError("Group name must contain a visible character.")


class CreateGroupSchema(Schema):
    name = fields.Str(
        required=True,
        validate=[validate.Length(max=100, error="Group name is limited to 100 characters."), _not_blank],
    )


class AddMemberSchema(Schema):
    # strict: "2" is rejected, not coerced
    user_id = fields.Int(required=True, strict=True, validate=validate.Range(min=1))
