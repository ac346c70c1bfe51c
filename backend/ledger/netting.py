"""Pairwise net debt between event participants."""

from decimal import Decimal

from ledger.amortization import ZERO, amortize, payer_count
from ledger.entities import Event


def get_net_amount_between_users(event: Event, user_a: int, user_b: int) -> Decimal:
    """
    Net amount user B owes user A across the whole event.

    Only activities paid for by A or B are considered. Confirmed entries are
    dropped entirely, and each side is amortized per activity using that
    activity's own payer count.

    Args:
        event: Event to scan
        user_a: Creditor side of the result
        user_b: Debtor side of the result

    Returns:
        Positive if B owes A, negative if A owes B, zero when settled or the
        debts cancel out.
    """
    total_owed_by_a = ZERO
    total_owed_by_b = ZERO

    for activity in event.activities:
        if activity.payee_id not in (user_a, user_b):
            continue

        owed_by_a = ZERO
        owed_by_b = ZERO

        for entry in activity.iter_payers():
            if entry.payment_confirmed:
                continue

            if entry.payer_id == user_a and activity.payee_id == user_b:
                owed_by_a += entry.amount_owing
            elif entry.payer_id == user_b and activity.payee_id == user_a:
                owed_by_b += entry.amount_owing

        count = payer_count(activity)
        total_owed_by_a += amortize(activity, owed_by_a, count)
        total_owed_by_b += amortize(activity, owed_by_b, count)

    return total_owed_by_b - total_owed_by_a


def counterparties(event: Event, user_id: int) -> list[int]:
    """Participants plus the creator, deduplicated, without `user_id`."""
    result = []
    for participant_id in [*event.participant_ids, event.creator_id]:
        if participant_id != user_id and participant_id not in result:
            result.append(participant_id)
    return result


def get_user_total_owed(event: Event, user_id: int) -> Decimal:
    """Sum of positive net amounts other users owe `user_id`."""
    total = ZERO
    for other_id in counterparties(event, user_id):
        net = get_net_amount_between_users(event, user_id, other_id)
        if net > 0:
            total += net
    return total


def get_user_total_owing(event: Event, user_id: int) -> Decimal:
    """Sum of positive net amounts `user_id` owes other users."""
    total = ZERO
    for other_id in counterparties(event, user_id):
        net = get_net_amount_between_users(event, other_id, user_id)
        if net > 0:
            total += net
    return total


def get_active_participants(event: Event) -> list[int]:
    """Distinct payer ids across every activity, in first-seen order."""
    seen = {}
    for activity in event.activities:
        for entry in activity.iter_payers():
            seen.setdefault(entry.payer_id, None)
    return list(seen)
