"""
services/settlement_engine.py — Debt simplification.

Turns net balances into the transfers that settle them:

  1. Debtors (balance < 0, kept as the positive amount owed) and creditors
     (balance > 0) are listed in their order of appearance in the input.
  2. The current debtor pays the current creditor min(debt, credit).
  3. Whichever side reaches zero advances; both may advance at once.

Each transfer zeroes at least one party, and the final transfer zeroes two,
so the result has at most (parties with a non-zero balance - 1) entries.
Transfers may route through a party other than the one who originally paid;
only the count is minimised, not fidelity to who paid for what.

All amounts are integer minor units. The engine never sees fractions.
"""

from __future__ import annotations

from splitbook.app.errors import AppError, ErrorCode


def simplify_debts(balances: dict[int, int]) -> list[dict]:
    """
    Greedy debtor/creditor matching.

    Args:
        balances: {user_id: net_balance_minor}, summing to exactly 0.

    Returns:
        [{"from_user_id": int, "to_user_id": int, "amount_minor": int}, ...]
        An empty list means every balance is already zero.

    Raises:
        AppError(INTERNAL_ERROR, 500) — balances do not sum to zero.
    """
    if sum(balances.values()) != 0:
        raise AppError(
            ErrorCode.INTERNAL_ERROR,
            "Cannot simplify debts: balances do not sum to zero.",
            500,
        )

    debtors = [[uid, -amount] for uid, amount in balances.items() if amount < 0]
    creditors = [[uid, amount] for uid, amount in balances.items() if amount > 0]

    transfers: list[dict] = []
    i = j = 0

    while i < len(debtors) and j < len(creditors):
        debtor = debtors[i]
        creditor = creditors[j]

        amount = min(debtor[1], creditor[1])
        if amount > 0:
            transfers.append({
                "from_user_id": debtor[0],
                "to_user_id": creditor[0],
                "amount_minor": amount,
            })
            debtor[1] -= amount
            creditor[1] -= amount

        if debtor[1] == 0:
            i += 1
        if creditor[1] == 0:
            j += 1

    return transfers
