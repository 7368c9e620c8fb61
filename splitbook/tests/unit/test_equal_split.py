"""
tests/unit/test_equal_split.py — Unit tests for split_engine.

What this file proves:
  - sum(shares) == total for every total >= 0 and 1..50 participants
  - max(share) - min(share) <= 1 minor unit
  - The leftover minor units go to the FIRST participants, in the order given
  - Identical inputs give identical output
  - Empty participant list → INVALID_PARTICIPANTS; negative or non-int total → INVALID_AMOUNT

No database, no Flask.
"""

from __future__ import annotations

import pytest

from splitbook.app.errors import AppError, ErrorCode
from splitbook.app.services.split_engine import allocate_shares, split_equally


def _assert_exact(shares: list[int], total: int) -> None:
    assert sum(shares) == total, f"split sum {sum(shares)} != total {total}"


# ── Concrete cases ─────────────────────────────────────────────────────────

def test_even_split_three_participants():
    shares = split_equally(9000, ["A", "B", "C"])
    assert shares == [3000, 3000, 3000]


def test_remainder_goes_to_first_participant():
    shares = split_equally(100, ["A", "B", "C"])
    assert shares == [34, 33, 33]


def test_remainder_of_two_goes_to_first_two():
    shares = split_equally(101, [7, 8, 9])
    assert shares == [34, 34, 33]


def test_order_decides_who_absorbs_remainder():
    assert split_equally(100, [3, 2, 1]) == [34, 33, 33]
    assert allocate_shares(100, [3, 2, 1])[0]["user_id"] == 3


def test_single_participant_takes_everything():
    assert split_equally(12345, [1]) == [12345]


def test_zero_total():
    assert split_equally(0, [1, 2, 3]) == [0, 0, 0]


def test_total_smaller_than_participant_count():
    shares = split_equally(2, [1, 2, 3, 4])
    assert shares == [1, 1, 0, 0]


def test_shares_are_ints():
    assert all(type(s) is int for s in split_equally(1000, [1, 2, 3]))


# ── Properties ─────────────────────────────────────────────────────────────

@pytest.mark.parametrize("total", [0, 1, 99, 100, 101, 9999, 10000, 123457, 10**12 + 7])
@pytest.mark.parametrize("n", [1, 2, 3, 7, 13, 50])
def test_exactness_and_fairness(total, n):
    shares = split_equally(total, list(range(1, n + 1)))

    assert len(shares) == n
    _assert_exact(shares, total)
    assert max(shares) - min(shares) <= 1
    # non-increasing: the larger shares are at the front
    assert shares == sorted(shares, reverse=True)


def test_deterministic():
    participants = [5, 1, 9, 2]
    assert split_equally(1003, participants) == split_equally(1003, participants)
    assert allocate_shares(1003, participants) == allocate_shares(1003, participants)


# ── allocate_shares ────────────────────────────────────────────────────────

def test_allocate_shares_pairs_ids_with_positions():
    result = allocate_shares(100, [10, 20, 30])
    assert result == [
        {"user_id": 10, "amount_minor": 34, "position": 0},
        {"user_id": 20, "amount_minor": 33, "position": 1},
        {"user_id": 30, "amount_minor": 33, "position": 2},
    ]


# ── Errors ─────────────────────────────────────────────────────────────────

def test_empty_participants_rejected():
    with pytest.raises(AppError) as exc_info:
        split_equally(100, [])
    assert exc_info.value.code == ErrorCode.INVALID_PARTICIPANTS
    assert exc_info.value.http_status == 400


def test_negative_total_rejected():
    with pytest.raises(AppError) as exc_info:
        split_equally(-1, [1, 2])
    assert exc_info.value.code == ErrorCode.INVALID_AMOUNT


@pytest.mark.parametrize("bad", [1.5, "100", None, True])
def test_non_integer_total_rejected(bad):
    with pytest.raises(AppError) as exc_info:
        split_equally(bad, [1, 2])
    assert exc_info.value.code == ErrorCode.INVALID_AMOUNT
