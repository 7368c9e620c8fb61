"""
errors.py — The ledger's failure vocabulary.

Expected failures (bad input, unknown ids, broken ledger rules, storage
errors) are raised as AppError carrying a stable code from ErrorCode. The
handlers registered in create_app() render them as

    {"error": {"code": ..., "message": ..., "field": ...}}

with AppError.http_status. Clients branch on `code`; `message` is for people.
"""

from __future__ import annotations


class AppError(Exception):
    """`field` names the offending request field when there is one."""

    def __init__(self, code: str, message: str, http_status: int, field: str | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.http_status = http_status
        self.field = field

    def to_dict(self) -> dict:
        body = {"code": self.code, "message": self.message}
        if self.field is not None:
            body["field"] = self.field
        return {"error": body}

    def __repr__(self) -> str:
        return f"AppError({self.code!r}, {self.message!r}, {self.http_status})"


class ErrorCode:
    # 400: request does not describe a valid expense, group or user
    MISSING_FIELD = "MISSING_FIELD"
    INVALID_FIELD = "INVALID_FIELD"
    INVALID_AMOUNT = "INVALID_AMOUNT"
    INVALID_AMOUNT_PRECISION = "INVALID_AMOUNT_PRECISION"
    INVALID_PARTICIPANTS = "INVALID_PARTICIPANTS"

    # 401 / 403
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    TOKEN_MISSING = "TOKEN_MISSING"
    TOKEN_INVALID = "TOKEN_INVALID"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    FORBIDDEN = "FORBIDDEN"

    # 404; REFERENCE_NOT_FOUND is a payer or participant id with no user
    USER_NOT_FOUND = "USER_NOT_FOUND"
    GROUP_NOT_FOUND = "GROUP_NOT_FOUND"
    EXPENSE_NOT_FOUND = "EXPENSE_NOT_FOUND"
    REFERENCE_NOT_FOUND = "REFERENCE_NOT_FOUND"

    # 409
    DUPLICATE_EMAIL = "DUPLICATE_EMAIL"
    DUPLICATE_USERNAME = "DUPLICATE_USERNAME"
    ALREADY_MEMBER = "ALREADY_MEMBER"

    # 422: ledger rules; non-members in an expense, unsettled members, groups with expenses
    PAYER_NOT_MEMBER = "PAYER_NOT_MEMBER"
    PARTICIPANT_NOT_MEMBER = "PARTICIPANT_NOT_MEMBER"
    MEMBER_HAS_BALANCE = "MEMBER_HAS_BALANCE"
    GROUP_HAS_EXPENSES = "GROUP_HAS_EXPENSES"

    # 500; INTERNAL_ERROR also covers a ledger whose balances do not sum to zero
    PERSISTENCE_FAILURE = "PERSISTENCE_FAILURE"
    INTERNAL_ERROR = "INTERNAL_ERROR"
