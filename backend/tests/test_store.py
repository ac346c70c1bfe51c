from datetime import datetime
from decimal import Decimal
from itertools import count

import pytest

from ledger.entities import Activity, ActivityItem, ActivityItemPayer, Event, User
from ledger.exceptions import (
    EntityNotFoundError,
    InvalidAllocationError,
    InvalidReferenceError,
    PersistenceError,
)
from ledger.reconcile import ProposedItem
from ledger.store import LedgerStore

ALICE, BOB, CAROL, DAVE, OUTSIDER = 1, 2, 3, 4, 5
EVENT_DATE = datetime(2025, 10, 1, 18, 0)


class FakeUsers:
    def __init__(self, ids):
        self.users = {i: User(id=i, display_name=f"User {i}", email=f"user{i}@example.com") for i in ids}

    def get_user(self, user_id):
        return self.users.get(user_id)


class FakeGateway:
    """Records calls; set `fail` to a method name to make it fail, `fail_with` to pick how."""

    def __init__(self):
        self.ids = count(1)
        self.calls = []
        self.fail = None
        self.fail_with = "raise"

    def _call(self, name, result):
        self.calls.append(name)
        if self.fail == name:
            if self.fail_with == "raise":
                raise RuntimeError("database is locked")
            return None if self.fail_with == "none" else False
        return result

    def _items(self, activity_id, items):
        return [
            ActivityItem(
                id=next(self.ids),
                activity_id=activity_id,
                name=item.name,
                cost=item.cost,
                is_split_evenly=item.is_split_evenly,
                payers=[ActivityItemPayer(payer_id=uid, amount_owing=amount) for uid, amount in item.payers.items()]
            )
            for item in items
        ]

    def create_event(self, name, date, creator_id, participant_ids):
        event = Event(id=next(self.ids), name=name, date=date, creator_id=creator_id, participant_ids=list(participant_ids))
        return self._call("create_event", event)

    def update_event(self, event_id, name, date, add_participant_ids, remove_participant_ids):
        self.last_update_event = (add_participant_ids, remove_participant_ids)
        return self._call("update_event", True)

    def delete_event(self, event_id):
        return self._call("delete_event", None)

    def create_activity(self, event_id, name, is_gratuity_percent, gratuity_amount, add_five_percent_tax, payee_id, items):
        activity_id = next(self.ids)
        activity = Activity(
            id=activity_id,
            event_id=event_id,
            name=name,
            payee_id=payee_id,
            is_gratuity_percent=is_gratuity_percent,
            gratuity_amount=gratuity_amount,
            add_five_percent_tax=add_five_percent_tax,
            items=self._items(activity_id, items)
        )
        return self._call("create_activity", activity)

    def update_activity(self, activity_id, name, is_gratuity_percent, gratuity_amount,
                        add_five_percent_tax, items_to_add, item_ids_to_remove):
        return self._call("update_activity", self._items(activity_id, items_to_add))

    def delete_activity(self, activity_id):
        return self._call("delete_activity", None)

    def update_payer_flags(self, activity_ids, payer_id, has_paid=None, payment_confirmed=None):
        self.last_flags = (list(activity_ids), payer_id, has_paid, payment_confirmed)
        return self._call("update_payer_flags", True)

    def load_all_events(self):
        return []


def item(name, cost, payers):
    return ProposedItem(
        name=name,
        cost=Decimal(cost),
        is_split_evenly=False,
        payers={uid: Decimal(amount) for uid, amount in payers.items()}
    )


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def ledger(gateway):
    return LedgerStore(gateway=gateway, users=FakeUsers([ALICE, BOB, CAROL, DAVE, OUTSIDER]))


@pytest.fixture
def event(ledger):
    return ledger.create_event("Dinner", EVENT_DATE, ALICE, [BOB, CAROL])


def add_activity(ledger, event, payee_id=ALICE, items=None, gratuity="0"):
    return ledger.create_activity(
        event.id,
        payee_id=payee_id,
        name="Supper",
        is_gratuity_percent=True,
        gratuity_amount=Decimal(gratuity),
        add_five_percent_tax=False,
        items=items or [item("Steak", "30", {BOB: "30"})]
    )


# Events

def test_create_event_is_visible_to_members_only(ledger, event):
    assert ledger.get_event(event.id) is event
    assert ledger.get_user_events(ALICE) == [event]
    assert ledger.get_user_events(BOB) == [event]
    assert ledger.get_user_events(DAVE) == []


def test_create_event_rejects_unknown_users(ledger, gateway):
    with pytest.raises(InvalidReferenceError) as exc:
        ledger.create_event("Dinner", EVENT_DATE, ALICE, [BOB, 98, 99, 98])

    assert exc.value.missing_ids == [98, 99]
    assert gateway.calls == []
    assert ledger.get_user_events(ALICE) == []


@pytest.mark.parametrize("fail_with", ["raise", "none"])
def test_create_event_failure_leaves_no_event(ledger, gateway, fail_with):
    gateway.fail = "create_event"
    gateway.fail_with = fail_with

    with pytest.raises(PersistenceError):
        ledger.create_event("Dinner", EVENT_DATE, ALICE, [BOB])
    assert ledger.get_user_events(ALICE) == []


def test_update_event_sends_participant_delta(ledger, gateway, event):
    ledger.update_event(event.id, "Late dinner", EVENT_DATE, [CAROL, DAVE, DAVE])

    assert gateway.last_update_event == ([DAVE], [BOB])
    assert event.name == "Late dinner"
    assert event.participant_ids == [CAROL, DAVE]


def test_update_event_failure_keeps_old_state(ledger, gateway, event):
    gateway.fail = "update_event"
    gateway.fail_with = "false"

    with pytest.raises(PersistenceError):
        ledger.update_event(event.id, "Renamed", EVENT_DATE, [DAVE])
    assert event.name == "Dinner"
    assert event.participant_ids == [BOB, CAROL]


def test_update_unknown_event(ledger):
    with pytest.raises(EntityNotFoundError):
        ledger.update_event(404, "Nope", EVENT_DATE, [])


def test_delete_event(ledger, gateway, event):
    ledger.delete_event(event.id)
    assert ledger.fetch_event(event.id) is None
    assert "delete_event" in gateway.calls


def test_delete_event_drops_its_lock(ledger, event):
    with ledger.event_lock(event.id):
        pass
    assert event.id in ledger._event_locks

    ledger.delete_event(event.id)
    assert event.id not in ledger._event_locks


def test_delete_event_failure_keeps_event(ledger, gateway, event):
    gateway.fail = "delete_event"

    with pytest.raises(PersistenceError):
        ledger.delete_event(event.id)
    assert ledger.fetch_event(event.id) is event


# Activities

def test_create_activity_attaches_to_event(ledger, event):
    activity = add_activity(ledger, event, gratuity="15")

    assert event.activities == [activity]
    assert ledger.get_activity(event, activity.id) is activity
    assert activity.gratuity_amount == Decimal("15")
    assert activity.items[0].find_payer(BOB).amount_owing == Decimal("30")


def test_create_activity_failure_leaves_event_untouched(ledger, gateway, event):
    gateway.fail = "create_activity"

    with pytest.raises(PersistenceError):
        add_activity(ledger, event)
    assert event.activities == []


def test_create_activity_rejects_unknown_payer(ledger, gateway, event):
    with pytest.raises(InvalidReferenceError) as exc:
        add_activity(ledger, event, items=[item("Steak", "30", {77: "30"})])

    assert exc.value.missing_ids == [77]
    assert "create_activity" not in gateway.calls


def test_create_activity_rejects_payer_outside_event(ledger, event):
    with pytest.raises(InvalidAllocationError):
        add_activity(ledger, event, items=[item("Steak", "30", {OUTSIDER: "30"})])
    assert event.activities == []


def test_create_activity_rejects_negative_gratuity(ledger, event):
    with pytest.raises(InvalidAllocationError):
        add_activity(ledger, event, gratuity="-1")


def test_create_activity_requires_items(ledger, event):
    with pytest.raises(InvalidAllocationError):
        ledger.create_activity(event.id, ALICE, "Empty", True, Decimal("0"), False, [])


def test_create_activity_in_unknown_event(ledger):
    with pytest.raises(EntityNotFoundError):
        ledger.create_activity(404, ALICE, "Ghost", True, Decimal("0"), False, [item("Tea", "3", {BOB: "3"})])


def test_update_activity_replaces_only_changed_items(ledger, event):
    activity = add_activity(ledger, event, items=[
        item("Steak", "30", {BOB: "30"}),
        item("Wine", "20", {BOB: "10", CAROL: "10"}),
    ])
    steak, wine = activity.items

    diff = ledger.update_activity(
        event.id, activity.id, "Supper", False, Decimal("6"), True,
        [item("Steak", "30", {BOB: "30"}), item("Wine", "20", {CAROL: "20"})]
    )

    assert diff.item_ids_to_remove == [wine.id]
    assert len(diff.items_to_add) == 1
    assert activity.items[0] is steak
    assert activity.items[1].find_payer(CAROL).amount_owing == Decimal("20")
    assert activity.is_gratuity_percent is False
    assert activity.add_five_percent_tax is True


def test_update_activity_with_same_items_is_empty_diff(ledger, event):
    activity = add_activity(ledger, event)
    original = list(activity.items)

    diff = ledger.update_activity(
        event.id, activity.id, "Renamed", True, Decimal("0"), False, [item("Steak", "30", {BOB: "30"})]
    )

    assert diff.is_empty
    assert activity.items == original
    assert activity.name == "Renamed"


def test_update_activity_failure_keeps_items(ledger, gateway, event):
    activity = add_activity(ledger, event)
    original = list(activity.items)
    gateway.fail = "update_activity"
    gateway.fail_with = "none"

    with pytest.raises(PersistenceError):
        ledger.update_activity(
            event.id, activity.id, "Renamed", True, Decimal("0"), False, [item("Tea", "3", {CAROL: "3"})]
        )
    assert activity.items == original
    assert activity.name == "Supper"


def test_update_activity_validates_against_payee(ledger, event):
    activity = add_activity(ledger, event)

    with pytest.raises(InvalidAllocationError):
        ledger.update_activity(
            event.id, activity.id, "Supper", True, Decimal("0"), False, [item("Steak", "30", {ALICE: "30"})]
        )


def test_delete_activity(ledger, event):
    activity = add_activity(ledger, event)
    ledger.delete_activity(event.id, activity.id)
    assert event.activities == []


def test_delete_unknown_activity(ledger, event):
    with pytest.raises(EntityNotFoundError):
        ledger.delete_activity(event.id, 404)


# Settlement

def test_record_payment_flags_creditor_activities(ledger, gateway, event):
    owed_to_alice = add_activity(ledger, event)
    owed_to_carol = add_activity(ledger, event, payee_id=CAROL, items=[item("Cab", "12", {BOB: "12"})])

    touched = ledger.record_payment(event.id, ALICE, BOB)

    assert touched == [owed_to_alice.id]
    assert gateway.last_flags == ([owed_to_alice.id], BOB, True, None)
    assert owed_to_alice.items[0].find_payer(BOB).has_paid
    assert not owed_to_carol.items[0].find_payer(BOB).has_paid


def test_record_payment_skips_activities_without_payer(ledger, gateway, event):
    add_activity(ledger, event, items=[item("Wine", "10", {CAROL: "10"})])
    gateway.calls.clear()

    assert ledger.record_payment(event.id, ALICE, BOB) == []
    assert gateway.calls == []


def test_confirm_payments_can_be_revoked(ledger, event):
    activity = add_activity(ledger, event)
    entry = activity.items[0].find_payer(BOB)

    ledger.confirm_payments(event.id, ALICE, BOB)
    assert entry.payment_confirmed

    ledger.confirm_payments(event.id, ALICE, BOB, confirmed=False)
    assert not entry.payment_confirmed


def test_flag_write_failure_changes_nothing(ledger, gateway, event):
    activity = add_activity(ledger, event)
    gateway.fail = "update_payer_flags"

    with pytest.raises(PersistenceError):
        ledger.record_payment(event.id, ALICE, BOB)
    assert not activity.items[0].find_payer(BOB).has_paid


def test_confirm_payments_covers_every_creditor_activity(ledger, event):
    first = add_activity(ledger, event)
    second = add_activity(ledger, event)

    assert ledger.confirm_payments(event.id, ALICE, BOB) == [first.id, second.id]
    assert first.items[0].find_payer(BOB).payment_confirmed
    assert second.items[0].find_payer(BOB).payment_confirmed


def test_load_replaces_graph(ledger, gateway, event):
    ledger.load()
    assert ledger.fetch_event(event.id) is None
