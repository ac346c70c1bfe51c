"""Tax and gratuity distribution for activities.

All arithmetic uses Decimal and nothing is rounded here; presentation code
rounds at the API boundary.
"""

from decimal import Decimal

from ledger.entities import Activity, ActivityItemPayer


TAX_RATE = Decimal("0.05")
ZERO = Decimal("0")


def payer_count(activity: Activity) -> int:
    """Number of distinct users listed as payers across all items."""
    return len({payer.payer_id for payer in activity.iter_payers()})


def tax(activity: Activity, amount: Decimal) -> Decimal:
    if not activity.add_five_percent_tax:
        return ZERO
    return amount * TAX_RATE


def gratuity(activity: Activity, amount: Decimal, count: int | None = None) -> Decimal:
    """
    Gratuity owed on top of `amount`.

    Percent gratuity scales with the amount. Flat gratuity is divided evenly
    across the distinct payers of the activity regardless of the amount, and
    is zero for an activity with no payers.

    Args:
        activity: Activity whose gratuity settings apply
        amount: Pre-tax, pre-gratuity base
        count: Precomputed payer count, to avoid rescanning the items

    Returns:
        Gratuity amount as an unrounded Decimal
    """
    if activity.is_gratuity_percent:
        return amount * (activity.gratuity_amount / Decimal(100))

    if count is None:
        count = payer_count(activity)
    if count == 0:
        return ZERO
    return activity.gratuity_amount / Decimal(count)


def amortize(activity: Activity, amount: Decimal, count: int | None = None) -> Decimal:
    """Return `amount` plus tax and gratuity. A zero base stays zero."""
    if amount == 0:
        return ZERO
    return amount + tax(activity, amount) + gratuity(activity, amount, count)


def total_amount_owed(activity: Activity, user_id: int) -> Decimal:
    """How much the payers of the activity owe `user_id` (nonzero only for the payee)."""
    if activity.payee_id != user_id:
        return ZERO

    total = sum(
        (payer.amount_owing for payer in activity.iter_payers() if payer.payer_id != user_id),
        ZERO
    )
    return amortize(activity, total)


def total_amount_owing(activity: Activity, user_id: int) -> Decimal:
    """How much `user_id` owes the payee of the activity."""
    if activity.payee_id == user_id:
        return ZERO

    total = ZERO
    for item in activity.items:
        payer = item.find_payer(user_id)
        if payer is not None:
            total += payer.amount_owing
    return amortize(activity, total)


def get_payers(activity: Activity) -> list[ActivityItemPayer]:
    """
    Aggregate each payer's shares across items, then amortize per payer.

    Returns copies; the activity's own entries are never modified. The flags
    on each row are taken from the payer's first entry.
    """
    aggregated: dict[int, ActivityItemPayer] = {}

    for payer in activity.iter_payers():
        if payer.payer_id not in aggregated:
            aggregated[payer.payer_id] = ActivityItemPayer(
                payer_id=payer.payer_id,
                amount_owing=payer.amount_owing,
                has_paid=payer.has_paid,
                payment_confirmed=payer.payment_confirmed
            )
            continue
        aggregated[payer.payer_id].amount_owing += payer.amount_owing

    count = len(aggregated)
    for row in aggregated.values():
        row.amount_owing = amortize(activity, row.amount_owing, count)

    return list(aggregated.values())


def activity_subtotal(activity: Activity) -> Decimal:
    """Sum of item costs before tax and gratuity."""
    return sum((item.cost for item in activity.items), ZERO)
