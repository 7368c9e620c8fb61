"""
routes/users.py — User lookup and overall balance handlers.

Endpoints (base url_prefix=/api/v1/users):
  GET /users                         → 200  every registered user
  GET /users/:id                     → 200  user profile
  GET /users/by-username/:username   → 200  user profile
  GET /users/:id/balance             → 200  net balance across all groups
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify

from splitbook.app.extensions import db
from splitbook.app.middleware.auth_middleware import require_auth
from splitbook.app.services import ledger_service, user_service

users_bp = Blueprint("users", __name__)


@users_bp.route("/", methods=["GET"])
@require_auth
def list_users():
    result = user_service.list_users(db.session)
    return jsonify({"data": result, "warnings": []}), 200


@users_bp.route("/<int:user_id>", methods=["GET"])
@require_auth
def get_user(user_id: int):
    result = user_service.get_user_profile(user_id, db.session)
    return jsonify({"data": result, "warnings": []}), 200


@users_bp.route("/by-username/<string:username>", methods=["GET"])
@require_auth
def get_user_by_username(username: str):
    result = user_service.find_by_username(username, db.session)
    return jsonify({"data": result, "warnings": []}), 200


@users_bp.route("/<int:user_id>/balance", methods=["GET"])
@require_auth
def get_overall_balance(user_id: int):
    """
    GET /users/:id/balance

    Positive overall_balance means the user is owed money; negative means
    they owe. The per-group breakdown always sums to overall_balance.
    """
    result = ledger_service.user_overall_balance(
        user_id=user_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200
