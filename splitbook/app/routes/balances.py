"""
routes/balances.py — Group balance route handler.

Endpoints (base url_prefix=/api/v1/groups):
  GET /groups/:id/balances  → 200  net balances + simplified debts
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify

from splitbook.app.extensions import db
from splitbook.app.middleware.auth_middleware import require_auth
from splitbook.app.services import ledger_service

balances_bp = Blueprint("balances", __name__)


@balances_bp.route("/<int:group_id>/balances", methods=["GET"])
@require_auth
def get_balances(group_id: int):
    """
    GET /groups/:id/balances

    Balances are recomputed from the stored expenses on every request.
    balance_sum is always "0.00"; the service raises INTERNAL_ERROR (500)
    rather than return a summary that does not add up.
    """
    result = ledger_service.group_summary(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200
