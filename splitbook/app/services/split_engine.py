"""
services/split_engine.py — Equal split computation.

Pure functions, no session and no I/O. Given a total in minor units and an
ordered list of participant ids, produce one share per participant such that:

  - sum(shares) == total exactly (no cent is created or lost),
  - max(shares) - min(shares) <= 1,
  - the first `total mod n` participants, in the order given, carry the
    extra minor unit, so the same input always yields the same output.

Participant ids are assumed distinct; ledger_service validates that before
calling in here.
"""

from __future__ import annotations

from collections.abc import Sequence

from splitbook.app.errors import AppError, ErrorCode


def _validate_total(total_minor: int) -> None:
    if isinstance(total_minor, bool) or not isinstance(total_minor, int):
        raise AppError(
            ErrorCode.INVALID_AMOUNT,
            f"Split total must be an integer number of minor units, got {total_minor!r}.",
            400,
            field="amount",
        )
    if total_minor < 0:
        raise AppError(
            ErrorCode.INVALID_AMOUNT,
            f"Split total must not be negative, got {total_minor}.",
            400,
            field="amount",
        )


def split_equally(total_minor: int, participant_ids: Sequence[int]) -> list[int]:
    """
    Splits total_minor into len(participant_ids) shares, in participant order.

    Example: split_equally(100, [a, b, c]) == [34, 33, 33]

    Raises:
        AppError(INVALID_AMOUNT, 400)       — total is negative or not an int.
        AppError(INVALID_PARTICIPANTS, 400) — no participants.
    """
    _validate_total(total_minor)

    n = len(participant_ids)
    if n == 0:
        raise AppError(
            ErrorCode.INVALID_PARTICIPANTS,
            "An expense must have at least one participant.",
            400,
            field="participant_ids",
        )

    base, remainder = divmod(total_minor, n)
    return [base + 1 if i < remainder else base for i in range(n)]


def allocate_shares(total_minor: int, participant_ids: Sequence[int]) -> list[dict]:
    """
    Pairs each participant with its share and position, ready to become
    Split rows.

    Returns:
        [{"user_id": int, "amount_minor": int, "position": int}, ...]
    """
    shares = split_equally(total_minor, participant_ids)
    return [
        {"user_id": user_id, "amount_minor": share, "position": position}
        for position, (user_id, share) in enumerate(zip(participant_ids, shares))
    ]
