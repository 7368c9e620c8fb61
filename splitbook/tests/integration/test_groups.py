"""
tests/integration/test_groups.py — Integration tests for groups and membership.

Endpoints covered:
  POST   /groups                  → 201
  GET    /groups                  → 200
  GET    /groups/:id              → 200
  POST   /groups/:id/members      → 201 (owner only)
  DELETE /groups/:id/members/:uid → 200 (owner or self, balance must be zero)
  DELETE /groups/:id              → 200 (owner only, no expenses)
"""

from __future__ import annotations

from .conftest import (
    add_member,
    auth_headers,
    make_expense,
    make_group,
    register,
    setup_trio,
)


def _uid(user: dict) -> int:
    return user["user"]["id"]


def _remove(client, token: str, group_id: int, user_id: int):
    return client.delete(
        f"/api/v1/groups/{group_id}/members/{user_id}",
        headers=auth_headers(token),
    )


class TestCreateAndRead:

    def test_creator_is_owner_and_first_member(self, client):
        alice = register(client, "alice")
        group = make_group(client, alice["access_token"], "Trip")

        assert group["name"] == "Trip"
        assert group["owner_user_id"] == _uid(alice)
        assert group["members"] == [{"id": _uid(alice), "username": "alice"}]

    def test_blank_name_rejected(self, client):
        alice = register(client, "alice")
        resp = client.post(
            "/api/v1/groups/",
            json={"name": "   "},
            headers=auth_headers(alice["access_token"]),
        )
        assert resp.status_code == 400
        assert resp.get_json()["error"]["field"] == "name"

    def test_list_only_my_groups(self, client):
        alice = register(client, "alice")
        bob = register(client, "bob")
        make_group(client, alice["access_token"], "Mine")
        make_group(client, bob["access_token"], "Not mine")

        resp = client.get("/api/v1/groups/", headers=auth_headers(alice["access_token"]))
        assert resp.status_code == 200
        assert [g["name"] for g in resp.get_json()["data"]] == ["Mine"]

    def test_get_group_lists_members_in_join_order(self, client):
        alice, bob, carol, group = setup_trio(client)
        resp = client.get(f"/api/v1/groups/{group['id']}", headers=auth_headers(carol["access_token"]))
        assert resp.status_code == 200
        assert [m["username"] for m in resp.get_json()["data"]["members"]] == ["alice", "bob", "carol"]

    def test_get_group_non_member_forbidden(self, client):
        alice = register(client, "alice")
        bob = register(client, "bob")
        group = make_group(client, alice["access_token"])

        resp = client.get(f"/api/v1/groups/{group['id']}", headers=auth_headers(bob["access_token"]))
        assert resp.status_code == 403

    def test_missing_group(self, client):
        alice = register(client, "alice")
        resp = client.get("/api/v1/groups/999999", headers=auth_headers(alice["access_token"]))
        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "GROUP_NOT_FOUND"


class TestAddMember:

    def test_owner_adds_member(self, client):
        alice = register(client, "alice")
        bob = register(client, "bob")
        group = make_group(client, alice["access_token"])

        resp = add_member(client, alice["access_token"], group["id"], _uid(bob))
        assert resp.status_code == 201
        data = resp.get_json()["data"]
        assert data["user_id"] == _uid(bob)
        assert data["username"] == "bob"

    def test_non_owner_forbidden(self, client):
        alice, bob, carol, group = setup_trio(client)
        dave = register(client, "dave")

        resp = add_member(client, bob["access_token"], group["id"], _uid(dave))
        assert resp.status_code == 403

    def test_already_member(self, client):
        alice, bob, carol, group = setup_trio(client)
        resp = add_member(client, alice["access_token"], group["id"], _uid(bob))
        assert resp.status_code == 409
        assert resp.get_json()["error"]["code"] == "ALREADY_MEMBER"

    def test_unknown_user(self, client):
        alice = register(client, "alice")
        group = make_group(client, alice["access_token"])
        resp = add_member(client, alice["access_token"], group["id"], 999999)
        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "USER_NOT_FOUND"

    def test_user_id_must_be_integer(self, client):
        alice = register(client, "alice")
        group = make_group(client, alice["access_token"])
        resp = client.post(
            f"/api/v1/groups/{group['id']}/members",
            json={"user_id": "2"},
            headers=auth_headers(alice["access_token"]),
        )
        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == "INVALID_FIELD"


class TestRemoveMember:

    def test_member_leaves(self, client):
        alice, bob, carol, group = setup_trio(client)

        resp = _remove(client, carol["access_token"], group["id"], _uid(carol))
        assert resp.status_code == 200
        assert resp.get_json()["data"] == {"removed": True, "group_id": group["id"], "user_id": _uid(carol)}

        members = client.get(
            f"/api/v1/groups/{group['id']}", headers=auth_headers(alice["access_token"])
        ).get_json()["data"]["members"]
        assert [m["username"] for m in members] == ["alice", "bob"]

    def test_owner_removes_member(self, client):
        alice, bob, carol, group = setup_trio(client)
        resp = _remove(client, alice["access_token"], group["id"], _uid(bob))
        assert resp.status_code == 200

    def test_member_cannot_remove_other(self, client):
        alice, bob, carol, group = setup_trio(client)
        resp = _remove(client, bob["access_token"], group["id"], _uid(carol))
        assert resp.status_code == 403

    def test_member_with_balance_cannot_leave(self, client):
        alice, bob, carol, group = setup_trio(client)
        make_expense(client, alice["access_token"], group["id"], paid_by_user_id=_uid(alice), amount="90.00")

        resp = _remove(client, bob["access_token"], group["id"], _uid(bob))
        assert resp.status_code == 422
        assert resp.get_json()["error"]["code"] == "MEMBER_HAS_BALANCE"

        summary = client.get(
            f"/api/v1/groups/{group['id']}/balances", headers=auth_headers(alice["access_token"])
        ).get_json()["data"]
        assert len(summary["balances"]) == 3
        assert summary["balance_sum"] == "0.00"

    def test_settled_member_can_leave(self, client):
        alice, bob, carol, group = setup_trio(client)
        # carol is not part of this expense, so her balance stays at zero
        make_expense(
            client, alice["access_token"], group["id"],
            paid_by_user_id=_uid(alice),
            amount="10.00",
            participant_ids=[_uid(alice), _uid(bob)],
        )
        resp = _remove(client, carol["access_token"], group["id"], _uid(carol))
        assert resp.status_code == 200

    def test_removing_non_member(self, client):
        alice, bob, carol, group = setup_trio(client)
        dave = register(client, "dave")
        resp = _remove(client, alice["access_token"], group["id"], _uid(dave))
        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "USER_NOT_FOUND"


class TestDeleteGroup:

    def _delete_group(self, client, token: str, group_id: int):
        return client.delete(f"/api/v1/groups/{group_id}", headers=auth_headers(token))

    def test_owner_deletes_group_without_expenses(self, client):
        alice, bob, carol, group = setup_trio(client)

        resp = self._delete_group(client, alice["access_token"], group["id"])

        assert resp.status_code == 200
        assert resp.get_json()["data"] == {"deleted": True, "group_id": group["id"]}
        gone = client.get(f"/api/v1/groups/{group['id']}", headers=auth_headers(alice["access_token"]))
        assert gone.status_code == 404
        bobs_groups = client.get("/api/v1/groups/", headers=auth_headers(bob["access_token"]))
        assert bobs_groups.get_json()["data"] == []

    def test_member_cannot_delete(self, client):
        alice, bob, carol, group = setup_trio(client)

        resp = self._delete_group(client, bob["access_token"], group["id"])

        assert resp.status_code == 403
        assert resp.get_json()["error"]["code"] == "FORBIDDEN"

    def test_group_with_expenses_is_kept(self, client):
        alice, bob, carol, group = setup_trio(client)
        created = make_expense(client, alice["access_token"], group["id"], _uid(alice), "30.00")
        assert created.status_code == 201

        resp = self._delete_group(client, alice["access_token"], group["id"])

        assert resp.status_code == 422
        assert resp.get_json()["error"]["code"] == "GROUP_HAS_EXPENSES"
        still = client.get(f"/api/v1/groups/{group['id']}", headers=auth_headers(alice["access_token"]))
        assert still.status_code == 200

    def test_missing_group(self, client):
        alice = register(client, "alice")
        resp = self._delete_group(client, alice["access_token"], 999)
        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "GROUP_NOT_FOUND"
