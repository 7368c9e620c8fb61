"""
Unit tests for group_service branches that are lightly exercised by integration tests.

These tests run DB-free with mocked session/query behavior.
"""

from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from splitbook.app.errors import AppError, ErrorCode
from splitbook.app.services import group_service

_PATCH_BASE = "splitbook.app.services"
_PATCH_COMPUTE = f"{_PATCH_BASE}.balance_service.compute_balances"
_PATCH_RECORD = f"{_PATCH_BASE}.activity_service.record_activity"


def _mock_scalars_all(session: MagicMock, rows: list) -> None:
    session.execute.return_value.scalars.return_value.all.return_value = rows


def test_get_group_or_404_raises_when_group_missing():
    session = MagicMock()
    session.get.return_value = None

    with pytest.raises(AppError) as exc_info:
        group_service.get_group_or_404(group_id=404, session=session)

    err = exc_info.value
    assert err.code == ErrorCode.GROUP_NOT_FOUND
    assert err.http_status == 404


def test_require_member_passes_when_membership_exists():
    session = MagicMock()
    session.execute.return_value.scalar_one_or_none.return_value = object()

    group_service.require_member(group_id=1, user_id=10, session=session)

    session.execute.assert_called_once()


def test_require_member_raises_forbidden_when_missing():
    session = MagicMock()
    session.execute.return_value.scalar_one_or_none.return_value = None

    with pytest.raises(AppError) as exc_info:
        group_service.require_member(group_id=1, user_id=999, session=session)

    err = exc_info.value
    assert err.code == ErrorCode.FORBIDDEN
    assert err.http_status == 403


def test_list_groups_serializes_groups():
    session = MagicMock()
    ts1 = datetime(2026, 1, 1, tzinfo=timezone.utc)
    ts2 = datetime(2026, 1, 2, tzinfo=timezone.utc)
    rows = [
        SimpleNamespace(id=1, name="Trip", owner_user_id=10, created_at=ts1),
        SimpleNamespace(id=2, name="Flat", owner_user_id=11, created_at=ts2),
    ]
    _mock_scalars_all(session, rows)

    result = group_service.list_groups(user_id=10, session=session)

    assert result == [
        {"id": 1, "name": "Trip", "owner_user_id": 10, "created_at": ts1.isoformat()},
        {"id": 2, "name": "Flat", "owner_user_id": 11, "created_at": ts2.isoformat()},
    ]


# ── add_member ─────────────────────────────────────────────────────────────

def test_add_member_requires_owner():
    session = MagicMock()
    session.get.return_value = SimpleNamespace(id=1, name="Trip", owner_user_id=10)

    with pytest.raises(AppError) as exc_info:
        group_service.add_member(group_id=1, caller_id=11, target_user_id=12, session=session)

    assert exc_info.value.code == ErrorCode.FORBIDDEN


def test_add_member_unknown_user():
    session = MagicMock()
    session.get.side_effect = [SimpleNamespace(id=1, name="Trip", owner_user_id=10), None]

    with pytest.raises(AppError) as exc_info:
        group_service.add_member(group_id=1, caller_id=10, target_user_id=404, session=session)

    assert exc_info.value.code == ErrorCode.USER_NOT_FOUND
    assert exc_info.value.http_status == 404


def test_add_member_already_member():
    session = MagicMock()
    session.get.side_effect = [
        SimpleNamespace(id=1, name="Trip", owner_user_id=10),
        SimpleNamespace(id=12, username="carol"),
    ]
    session.execute.return_value.scalar_one_or_none.return_value = object()

    with pytest.raises(AppError) as exc_info:
        group_service.add_member(group_id=1, caller_id=10, target_user_id=12, session=session)

    assert exc_info.value.code == ErrorCode.ALREADY_MEMBER
    assert exc_info.value.http_status == 409


# ── remove_member ──────────────────────────────────────────────────────────

def _group_session(membership=object()) -> MagicMock:
    session = MagicMock()
    session.get.return_value = SimpleNamespace(id=1, name="Trip", owner_user_id=10)
    # require_member's lookup and the target lookup both see `membership`
    session.execute.return_value.scalar_one_or_none.return_value = membership
    return session


def test_remove_member_other_user_requires_owner():
    session = _group_session()

    with pytest.raises(AppError) as exc_info:
        group_service.remove_member(group_id=1, caller_id=11, target_user_id=12, session=session)

    assert exc_info.value.code == ErrorCode.FORBIDDEN


@patch(_PATCH_RECORD)
@patch(_PATCH_COMPUTE)
def test_remove_member_with_balance_is_refused(mock_compute, mock_record):
    session = _group_session()
    mock_compute.return_value = {10: 500, 11: -500}

    with pytest.raises(AppError) as exc_info:
        group_service.remove_member(group_id=1, caller_id=11, target_user_id=11, session=session)

    assert exc_info.value.code == ErrorCode.MEMBER_HAS_BALANCE
    assert exc_info.value.http_status == 422
    session.delete.assert_not_called()
    mock_record.assert_not_called()


@patch(_PATCH_RECORD)
@patch(_PATCH_COMPUTE)
def test_remove_member_settled_member_is_removed(mock_compute, mock_record):
    membership = object()
    session = _group_session(membership)
    mock_compute.return_value = {10: 0, 11: 0}

    group_service.remove_member(group_id=1, caller_id=10, target_user_id=11, session=session)

    session.delete.assert_called_once_with(membership)
    assert mock_record.call_args.kwargs["details"] == {"name": "Trip", "removed_user_id": 11}


# ── delete_group ───────────────────────────────────────────────────────────

def _owned_group(memberships=()) -> SimpleNamespace:
    return SimpleNamespace(id=1, name="Trip", owner_user_id=10, memberships=list(memberships))


def test_delete_group_requires_owner():
    session = MagicMock()
    session.get.return_value = _owned_group()

    with pytest.raises(AppError) as exc_info:
        group_service.delete_group(group_id=1, caller_id=11, session=session)

    assert exc_info.value.code == ErrorCode.FORBIDDEN
    session.delete.assert_not_called()


@patch(_PATCH_RECORD)
def test_delete_group_with_expenses_is_refused(mock_record):
    session = MagicMock()
    session.get.return_value = _owned_group()
    session.execute.return_value.first.return_value = (5,)

    with pytest.raises(AppError) as exc_info:
        group_service.delete_group(group_id=1, caller_id=10, session=session)

    assert exc_info.value.code == ErrorCode.GROUP_HAS_EXPENSES
    assert exc_info.value.http_status == 422
    session.delete.assert_not_called()
    mock_record.assert_not_called()


@patch(_PATCH_RECORD)
def test_delete_group_removes_memberships_then_group(mock_record):
    owner_row, member_row = object(), object()
    group = _owned_group([owner_row, member_row])
    session = MagicMock()
    session.get.return_value = group
    session.execute.return_value.first.return_value = None

    group_service.delete_group(group_id=1, caller_id=10, session=session)

    deleted = [c.args[0] for c in session.delete.call_args_list]
    assert deleted == [owner_row, member_row, group]
    kwargs = mock_record.call_args.kwargs
    assert kwargs["action"] == "DELETE"
    assert kwargs["details"] == {"name": "Trip"}
