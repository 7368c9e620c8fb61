"""
routes/expenses.py — Recording, correcting and removing expenses.

Mounted at /api/v1 itself, since expenses are created under their group
but addressed by id afterwards:

  POST   /groups/<id>/expenses    equal split over participant_ids or all members (201)
  GET    /groups/<id>/expenses    newest first
  GET    /expenses/<id>
  PATCH  /expenses/<id>           payer or group owner; a new amount is split again
  DELETE /expenses/<id>           payer or group owner
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from splitbook.app.extensions import db
from splitbook.app.middleware.auth_middleware import require_auth
from splitbook.app.models.expense import Expense
from splitbook.app.money import format_minor_units
from splitbook.app.schemas.expense_schema import CreateExpenseSchema, UpdateExpenseSchema
from splitbook.app.services import ledger_service

expenses_bp = Blueprint("expenses", __name__)


def _iso(moment):
    return moment.isoformat() if moment else None


def _expense_json(expense: Expense) -> dict:
    shares = [
        {
            "user_id": split.user_id,
            "username": split.user.username,
            "amount": format_minor_units(split.amount_minor),
        }
        for split in expense.splits
    ]
    return {
        "id": expense.id,
        "group_id": expense.group_id,
        "paid_by_user_id": expense.paid_by_user_id,
        "paid_by_username": expense.payer.username,
        "description": expense.description,
        "amount": format_minor_units(expense.amount_minor),
        "created_at": _iso(expense.created_at),
        "updated_at": _iso(expense.updated_at),
        "splits": shares,
    }


def _ok(payload, status: int = 200):
    return jsonify({"data": payload, "warnings": []}), status


@expenses_bp.route("/groups/<int:group_id>/expenses", methods=["POST"])
@require_auth
def create_expense(group_id: int):
    fields = CreateExpenseSchema().load(request.get_json(force=True) or {})
    expense = ledger_service.create_expense(
        group_id=group_id, caller_id=g.user_id, data=fields, session=db.session
    )
    db.session.commit()
    return _ok(_expense_json(expense), 201)


@expenses_bp.route("/groups/<int:group_id>/expenses", methods=["GET"])
@require_auth
def list_expenses(group_id: int):
    expenses = ledger_service.list_expenses(group_id=group_id, caller_id=g.user_id, session=db.session)
    return _ok([_expense_json(e) for e in expenses])


@expenses_bp.route("/expenses/<int:expense_id>", methods=["GET"])
@require_auth
def get_expense(expense_id: int):
    expense = ledger_service.get_expense(expense_id=expense_id, caller_id=g.user_id, session=db.session)
    return _ok(_expense_json(expense))


@expenses_bp.route("/expenses/<int:expense_id>", methods=["PATCH"])
@require_auth
def update_expense(expense_id: int):
    changes = UpdateExpenseSchema().load(request.get_json(force=True) or {})
    expense = ledger_service.update_expense(
        expense_id=expense_id, caller_id=g.user_id, data=changes, session=db.session
    )
    db.session.commit()
    return _ok(_expense_json(expense))


@expenses_bp.route("/expenses/<int:expense_id>", methods=["DELETE"])
@require_auth
def delete_expense(expense_id: int):
    ledger_service.delete_expense(expense_id=expense_id, caller_id=g.user_id, session=db.session)
    db.session.commit()
    return _ok({"deleted": True, "expense_id": expense_id})
