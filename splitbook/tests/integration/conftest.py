"""
Integration fixtures: one app and schema per session, emptied after each test.

The testing config uses in-memory SQLite; set TEST_DATABASE_URL to run the
same suite against PostgreSQL.

The module-level helpers drive the API the way a client would and assert
the happy-path status so tests can stay focused on the ledger behaviour
they check.
"""

from __future__ import annotations

import pytest

from splitbook.app import create_app
from splitbook.app.extensions import db as _db

DEFAULT_PASSWORD = "Password1"


@pytest.fixture(scope="session")
def app():
    flask_app = create_app("testing")
    with flask_app.app_context():
        _db.create_all()
    yield flask_app
    with flask_app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def clean_tables(app):
    yield
    with app.app_context():
        _db.session.rollback()
        # children first: activity_log, splits, expenses, memberships, groups, users
        with _db.engine.begin() as conn:
            for table in reversed(_db.metadata.sorted_tables):
                conn.execute(table.delete())


@pytest.fixture
def client(app):
    return app.test_client()


def _data(resp, expected_status: int, what: str):
    assert resp.status_code == expected_status, f"{what}: {resp.status_code} {resp.get_json()}"
    return resp.get_json()["data"]


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def register(client, username: str = "alice", email: str | None = None,
             password: str = DEFAULT_PASSWORD) -> dict:
    """{"user": {...}, "access_token": ...} for a freshly registered user."""
    body = {
        "username": username,
        "email": email or f"{username}@test.com",
        "password": password,
    }
    return _data(client.post("/api/v1/auth/register", json=body), 201, "register")


def login(client, username: str, password: str = DEFAULT_PASSWORD) -> dict:
    body = {"username": username, "password": password}
    return _data(client.post("/api/v1/auth/login", json=body), 200, "login")


def make_group(client, token: str, name: str = "Test Group") -> dict:
    """The token's user owns the new group and is its only member."""
    resp = client.post("/api/v1/groups/", json={"name": name}, headers=auth_headers(token))
    return _data(resp, 201, "make_group")


def add_member(client, token: str, group_id: int, user_id: int):
    """Returns the raw response; callers check refusals too."""
    return client.post(
        f"/api/v1/groups/{group_id}/members",
        json={"user_id": user_id},
        headers=auth_headers(token),
    )


def make_expense(client, token: str, group_id: int, paid_by_user_id: int, amount,
                 participant_ids: list[int] | None = None,
                 description: str = "Test Expense"):
    """Returns the raw response. participant_ids=None lets the server use every member."""
    body = {"description": description, "amount": amount, "paid_by_user_id": paid_by_user_id}
    if participant_ids is not None:
        body["participant_ids"] = participant_ids
    return client.post(
        f"/api/v1/groups/{group_id}/expenses",
        json=body,
        headers=auth_headers(token),
    )


def get_summary(client, token: str, group_id: int) -> dict:
    resp = client.get(f"/api/v1/groups/{group_id}/balances", headers=auth_headers(token))
    return _data(resp, 200, "balances")


def balances_by_user(client, token: str, group_id: int) -> dict[int, str]:
    return {
        row["user_id"]: row["balance"]
        for row in get_summary(client, token, group_id)["balances"]
    }


def setup_trio(client):
    """alice owns "Trip"; bob then carol join. Returns (alice, bob, carol, group)."""
    alice, bob, carol = (register(client, name) for name in ("alice", "bob", "carol"))
    group = make_group(client, alice["access_token"], "Trip")
    for member in (bob, carol):
        add_member(client, alice["access_token"], group["id"], member["user"]["id"])
    return alice, bob, carol, group
