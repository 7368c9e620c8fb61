"""
schemas/expense_schema.py — Marshmallow schemas for expense endpoints.

Validation responsibility:
  - This file:
      - Field types and lengths, non-empty description
      - Amount: numeric, non-negative, at most 2 decimal places
        (INVALID_AMOUNT / INVALID_AMOUNT_PRECISION, 400). The loaded value
        is already an integer count of minor units.
      - participant_ids: non-empty, no repeated ids (INVALID_PARTICIPANTS, 400)
  - services/ledger_service.py:
      - Payer / participants exist (REFERENCE_NOT_FOUND, 404)
      - Payer / participants are group members (PAYER_NOT_MEMBER /
        PARTICIPANT_NOT_MEMBER, 422)
      - Edit / delete permission (FORBIDDEN, 403)

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
           See extensions.py for the full explanation.
"""

from __future__ import annotations

from marshmallow import (
    Schema,
    ValidationError,
    fields,
    validate,
    validates,
    validates_schema,
)

from splitbook.app.errors import ErrorCode
from splitbook.app.money import Money


# ── Monetary amount field ─────────────────────────────────────────────────
#
# Accepts a JSON number or numeric string ("12.50", 12.5, 12) and loads it
# as minor units (1250). More than 2 decimal places is REJECTED with
# INVALID_AMOUNT_PRECISION, never rounded or truncated.
# ──────────────────────────────────────────────────────────────────────────

class MinorUnitsField(fields.Decimal):
    """Decimal on the wire, int minor units once loaded."""

    default_error_messages = {
        "invalid": ErrorCode.INVALID_AMOUNT,
        "special": ErrorCode.INVALID_AMOUNT,
    }

    def _deserialize(self, value, attr, data, **kwargs) -> int:
        amount = super()._deserialize(value, attr, data, **kwargs)

        # Decimal("10.123").as_tuple().exponent == -3  → 3 dp → reject
        if amount.as_tuple().exponent < -2:
            raise ValidationError(ErrorCode.INVALID_AMOUNT_PRECISION)
        if amount < 0:
            raise ValidationError(ErrorCode.INVALID_AMOUNT)

        return Money.from_amount(amount).minor_units


def _not_blank(value: str) -> None:
    # same rule as the CHECK (LENGTH(TRIM(description)) > 0) constraint
    if not value.strip():
        raise ValidationError("Description must contain a visible character.")


def _description_field(required: bool) -> fields.Str:
    return fields.Str(
        required=required,
        validate=[
            validate.Length(
                min=1,
                max=255,
                error="Description must be between 1 and 255 characters.",
            ),
            _not_blank,
        ],
    )


def _user_id_field(required: bool, name: str) -> fields.Int:
    return fields.Int(
        required=required,
        strict=True,   # reject floats like 1.0
        validate=validate.Range(min=1, error=f"{name} must be a positive integer."),
    )


# ── Create expense ─────────────────────────────────────────────────────────

class CreateExpenseSchema(Schema):
    """
    POST /groups/:id/expenses

    The expense is split equally among participant_ids in the order given;
    the first participants absorb any leftover minor units. Omit
    participant_ids to split among every current member in join order.
    """

    paid_by_user_id = _user_id_field(True, "paid_by_user_id")

    description = _description_field(True)

    amount = MinorUnitsField(required=True)

    participant_ids = fields.List(
        _user_id_field(True, "participant_ids entry"),
        load_default=None,
    )

    @validates("participant_ids")
    def validate_participant_ids(self, value, **kwargs) -> None:
        if value is None:
            return
        if not value:
            raise ValidationError(ErrorCode.INVALID_PARTICIPANTS)
        if len(value) != len(set(value)):
            raise ValidationError(ErrorCode.INVALID_PARTICIPANTS)


# ── Update expense ─────────────────────────────────────────────────────────

class UpdateExpenseSchema(Schema):
    """
    PATCH /expenses/:id

    All fields are optional but at least one must be present. A new amount
    is re-split over the expense's existing participants by the service.
    Participants themselves cannot be changed; delete and re-create instead.
    """

    paid_by_user_id = _user_id_field(False, "paid_by_user_id")

    description = _description_field(False)

    amount = MinorUnitsField()

    @validates_schema
    def validate_not_empty(self, data: dict, **kwargs) -> None:
        if not data:
            raise ValidationError(
                "Provide at least one of: description, amount, paid_by_user_id."
            )
