from conftest import make_activity, make_event, make_item
from ledger.settlement import (
    SettlementCheckMode,
    creditor_activities,
    has_creditor_confirmed_payments,
    has_payer_fully_repaid,
    has_payer_settled_debt,
    has_payments_been_confirmed,
    set_has_paid,
    set_payment_confirmed,
)

ALICE, BOB, CAROL = 1, 2, 3


def shared_activity():
    # Bob and Carol both owe Alice on the same activity
    return make_activity(1, ALICE, [
        make_item(1, 1, "20", {BOB: "10", CAROL: "10"}),
        make_item(2, 1, "5", {BOB: "5"}),
    ])


def test_set_has_paid_flags_every_entry_of_payer():
    activity = shared_activity()
    set_has_paid(activity, BOB, True)

    bob_entries = [e for e in activity.iter_payers() if e.payer_id == BOB]
    assert len(bob_entries) == 2
    assert all(e.has_paid for e in bob_entries)
    assert not activity.items[0].find_payer(CAROL).has_paid


def test_set_payment_confirmed_leaves_other_payers_alone():
    activity = shared_activity()
    set_payment_confirmed(activity, CAROL, True)

    assert activity.items[0].find_payer(CAROL).payment_confirmed
    assert not activity.items[0].find_payer(BOB).payment_confirmed


def test_payer_entries_mode_only_checks_own_entries():
    activity = shared_activity()
    set_has_paid(activity, BOB, True)

    assert has_payer_fully_repaid(activity, BOB)
    assert not has_payer_fully_repaid(activity, CAROL)


def test_payer_with_no_entries_counts_as_settled():
    activity = shared_activity()
    assert has_payer_fully_repaid(activity, 99)
    assert has_payments_been_confirmed(activity, 99)


def test_all_entries_mode_never_settles_a_shared_activity():
    """
    Legacy check over the unfiltered entry list.

    Every entry has to belong to the named payer and carry the flag, so once
    anybody else shares the activity the predicate stays False no matter what
    the payer does. Kept as an opt-in mode, the default filters to the payer.
    """
    activity = shared_activity()
    set_has_paid(activity, BOB, True)
    set_has_paid(activity, CAROL, True)

    assert not has_payer_fully_repaid(activity, BOB, SettlementCheckMode.ALL_ENTRIES)
    assert has_payer_fully_repaid(activity, BOB, SettlementCheckMode.PAYER_ENTRIES)


def test_all_entries_mode_for_single_payer_activity():
    activity = make_activity(1, ALICE, [make_item(1, 1, "10", {BOB: "10"})])
    assert not has_payments_been_confirmed(activity, BOB, SettlementCheckMode.ALL_ENTRIES)

    set_payment_confirmed(activity, BOB, True)
    assert has_payments_been_confirmed(activity, BOB, SettlementCheckMode.ALL_ENTRIES)


def test_creditor_activities_filters_by_payee():
    paid_by_alice = make_activity(1, ALICE, [make_item(1, 1, "10", {BOB: "10"})])
    paid_by_bob = make_activity(2, BOB, [make_item(2, 2, "10", {ALICE: "10"})])
    event = make_event(ALICE, [BOB], [paid_by_alice, paid_by_bob])

    assert creditor_activities(event, ALICE) == [paid_by_alice]
    assert creditor_activities(event, CAROL) == []


def test_settled_debt_spans_all_creditor_activities():
    first = make_activity(1, ALICE, [make_item(1, 1, "10", {BOB: "10"})])
    second = make_activity(2, ALICE, [make_item(2, 2, "10", {BOB: "10", CAROL: "5"})])
    event = make_event(ALICE, [BOB, CAROL], [first, second])

    set_has_paid(first, BOB, True)
    assert not has_payer_settled_debt(event, ALICE, BOB)

    set_has_paid(second, BOB, True)
    assert has_payer_settled_debt(event, ALICE, BOB)
    assert not has_payer_settled_debt(event, ALICE, CAROL)


def test_activities_of_other_creditors_are_ignored():
    owed_to_alice = make_activity(1, ALICE, [make_item(1, 1, "10", {BOB: "10"})])
    owed_to_carol = make_activity(2, CAROL, [make_item(2, 2, "10", {BOB: "10"})])
    event = make_event(ALICE, [BOB, CAROL], [owed_to_alice, owed_to_carol])

    set_payment_confirmed(owed_to_alice, BOB, True)
    assert has_creditor_confirmed_payments(event, ALICE, BOB)
    assert not has_creditor_confirmed_payments(event, CAROL, BOB)


def test_creditor_without_activities_is_vacuously_settled():
    event = make_event(ALICE, [BOB], [])
    assert has_payer_settled_debt(event, ALICE, BOB)
    assert has_creditor_confirmed_payments(event, ALICE, BOB)
