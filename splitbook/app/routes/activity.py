"""
routes/activity.py — Activity feed handler.

Endpoints (base url_prefix=/api/v1/activity):
  GET /activity?group_id=&limit=&offset=  → 200  newest first
"""

from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from splitbook.app.extensions import db
from splitbook.app.middleware.auth_middleware import require_auth
from splitbook.app.schemas.activity_schema import ActivityQuerySchema
from splitbook.app.services import activity_service

activity_bp = Blueprint("activity", __name__)


@activity_bp.route("/", methods=["GET"])
@require_auth
def list_activity():
    params = ActivityQuerySchema().load(request.args)
    limit = min(params["limit"], current_app.config.get("ACTIVITY_PAGE_LIMIT", 100))
    result = activity_service.list_activity(
        caller_id=g.user_id,
        session=db.session,
        group_id=params["group_id"],
        limit=limit,
        offset=params["offset"],
    )
    return jsonify({"data": result, "warnings": []}), 200
