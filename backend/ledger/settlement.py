"""Settlement flags: payer claims paid, creditor confirms receipt."""

from enum import Enum

from ledger.entities import Activity, Event


class SettlementCheckMode(str, Enum):
    """
    How per-activity settlement predicates treat entries of other payers.

    PAYER_ENTRIES only looks at the named payer's own entries; a payer with no
    entries in the activity counts as settled there.

    ALL_ENTRIES requires every entry of the activity to belong to the named
    payer and carry the flag, so an activity shared with anyone else never
    reports settled. This is the legacy behaviour, kept selectable for
    deployments that relied on it.
    """
    PAYER_ENTRIES = "payer_entries"
    ALL_ENTRIES = "all_entries"


def set_has_paid(activity: Activity, payer_id: int, has_paid: bool) -> None:
    """Set the claimed-paid flag on every entry of `payer_id` in the activity."""
    for entry in activity.iter_payers():
        if entry.payer_id == payer_id:
            entry.has_paid = has_paid


def set_payment_confirmed(activity: Activity, payer_id: int, confirmed: bool) -> None:
    """Set the creditor-confirmed flag on every entry of `payer_id` in the activity."""
    for entry in activity.iter_payers():
        if entry.payer_id == payer_id:
            entry.payment_confirmed = confirmed


def _check_flag(activity: Activity, payer_id: int, flag: str, mode: SettlementCheckMode) -> bool:
    if mode == SettlementCheckMode.ALL_ENTRIES:
        return all(
            entry.payer_id == payer_id and getattr(entry, flag)
            for entry in activity.iter_payers()
        )

    return all(
        getattr(entry, flag)
        for entry in activity.iter_payers()
        if entry.payer_id == payer_id
    )


def has_payer_fully_repaid(
    activity: Activity,
    payer_id: int,
    mode: SettlementCheckMode = SettlementCheckMode.PAYER_ENTRIES
) -> bool:
    return _check_flag(activity, payer_id, "has_paid", mode)


def has_payments_been_confirmed(
    activity: Activity,
    payer_id: int,
    mode: SettlementCheckMode = SettlementCheckMode.PAYER_ENTRIES
) -> bool:
    return _check_flag(activity, payer_id, "payment_confirmed", mode)


def creditor_activities(event: Event, creditor_id: int) -> list[Activity]:
    """Activities of the event whose payee is `creditor_id`."""
    return [activity for activity in event.activities if activity.payee_id == creditor_id]


def has_payer_settled_debt(
    event: Event,
    creditor_id: int,
    payer_id: int,
    mode: SettlementCheckMode = SettlementCheckMode.PAYER_ENTRIES
) -> bool:
    """True if the payer claimed payment on every activity the creditor paid for."""
    return all(
        has_payer_fully_repaid(activity, payer_id, mode)
        for activity in creditor_activities(event, creditor_id)
    )


def has_creditor_confirmed_payments(
    event: Event,
    creditor_id: int,
    payer_id: int,
    mode: SettlementCheckMode = SettlementCheckMode.PAYER_ENTRIES
) -> bool:
    """True if the creditor confirmed the payer on every activity they paid for."""
    return all(
        has_payments_been_confirmed(activity, payer_id, mode)
        for activity in creditor_activities(event, creditor_id)
    )
