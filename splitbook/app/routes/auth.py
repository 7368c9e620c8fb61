"""
routes/auth.py — Sign-up and log-in for ledger participants.

  POST /api/v1/auth/register   new user plus access token (201)
  POST /api/v1/auth/login      access token for username/password
  GET  /api/v1/auth/me         profile of the bearer

Duplicate and credential errors come from auth_service as AppError and are
rendered by the handlers registered in create_app().
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from splitbook.app.extensions import db
from splitbook.app.middleware.auth_middleware import require_auth
from splitbook.app.schemas.auth_schema import LoginSchema, RegisterSchema
from splitbook.app.services import auth_service

auth_bp = Blueprint("auth", __name__)


@auth_bp.route("/register", methods=["POST"])
def register():
    fields = RegisterSchema().load(request.get_json(force=True) or {})
    signed_in = auth_service.register_user(session=db.session, **fields)
    db.session.commit()
    return jsonify({"data": signed_in, "warnings": []}), 201


@auth_bp.route("/login", methods=["POST"])
def login():
    credentials = LoginSchema().load(request.get_json(force=True) or {})
    signed_in = auth_service.login_user(session=db.session, **credentials)
    return jsonify({"data": signed_in, "warnings": []}), 200


@auth_bp.route("/me", methods=["GET"])
@require_auth
def me():
    profile = auth_service.get_current_user(user_id=g.user_id, session=db.session)
    return jsonify({"data": profile, "warnings": []}), 200
