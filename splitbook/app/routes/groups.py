"""
routes/groups.py — Groups are the ledgers; members are the participants
whose balances the ledger tracks.

  POST   /api/v1/groups/                      create, caller owns it  (201)
  GET    /api/v1/groups/                      caller's groups
  GET    /api/v1/groups/<id>                  one group with members
  POST   /api/v1/groups/<id>/members          owner adds a user      (201)
  DELETE /api/v1/groups/<id>                  owner, only while it has no expenses
  DELETE /api/v1/groups/<id>/members/<uid>    owner or the member, only at zero balance
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from splitbook.app.extensions import db
from splitbook.app.middleware.auth_middleware import require_auth
from splitbook.app.schemas.group_schema import AddMemberSchema, CreateGroupSchema
from splitbook.app.services import group_service

groups_bp = Blueprint("groups", __name__)


def _body(schema_cls) -> dict:
    return schema_cls().load(request.get_json(force=True) or {})


@groups_bp.route("/", methods=["POST"])
@require_auth
def create_group():
    name = _body(CreateGroupSchema)["name"]
    group = group_service.create_group(name=name, owner_id=g.user_id, session=db.session)
    db.session.commit()
    return jsonify({"data": group, "warnings": []}), 201


@groups_bp.route("/", methods=["GET"])
@require_auth
def list_groups():
    groups = group_service.list_groups(user_id=g.user_id, session=db.session)
    return jsonify({"data": groups, "warnings": []}), 200


@groups_bp.route("/<int:group_id>", methods=["GET"])
@require_auth
def get_group(group_id: int):
    group = group_service.get_group(group_id=group_id, caller_id=g.user_id, session=db.session)
    return jsonify({"data": group, "warnings": []}), 200


@groups_bp.route("/<int:group_id>/members", methods=["POST"])
@require_auth
def add_member(group_id: int):
    new_member_id = _body(AddMemberSchema)["user_id"]
    group = group_service.add_member(
        group_id=group_id,
        caller_id=g.user_id,
        target_user_id=new_member_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": group, "warnings": []}), 201


@groups_bp.route("/<int:group_id>/members/<int:target_uid>", methods=["DELETE"])
@require_auth
def remove_member(group_id: int, target_uid: int):
    """MEMBER_HAS_BALANCE (409) while the member still owes or is owed."""
    group_service.remove_member(
        group_id=group_id,
        caller_id=g.user_id,
        target_user_id=target_uid,
        session=db.session,
    )
    db.session.commit()
    removed = {"removed": True, "group_id": group_id, "user_id": target_uid}
    return jsonify({"data": removed, "warnings": []}), 200


@groups_bp.route("/<int:group_id>", methods=["DELETE"])
@require_auth
def delete_group(group_id: int):
    """GROUP_HAS_EXPENSES (422) until every expense of the group is deleted."""
    group_service.delete_group(group_id=group_id, caller_id=g.user_id, session=db.session)
    db.session.commit()
    return jsonify({"data": {"deleted": True, "group_id": group_id}, "warnings": []}), 200
