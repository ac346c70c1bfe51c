"""Ledger store: the shared event graph and every operation that changes it.

Each event has its own re-entrant lock. A mutating operation holds the lock
of its event while it validates, writes through the persistence gateway and
updates the in-memory graph, so writers on one event are serialized. The graph
is only touched after the gateway call succeeded.
"""

import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from ledger.entities import Activity, Event, User
from ledger.exceptions import (
    EntityNotFoundError,
    InvalidAllocationError,
    InvalidReferenceError,
    PersistenceError,
)
from ledger.gateway import PersistenceGateway, UserDirectory
from ledger.reconcile import ItemDiff, ProposedItem, diff_items
from ledger.settlement import (
    SettlementCheckMode,
    creditor_activities,
    set_has_paid,
    set_payment_confirmed,
)

logger = logging.getLogger(__name__)


def _dedupe(ids: Iterable[int]) -> list[int]:
    result = []
    for i in ids:
        if i not in result:
            result.append(i)
    return result


class LedgerStore:
    """In-memory event graph backed by a persistence gateway."""

    def __init__(
        self,
        gateway: PersistenceGateway,
        users: UserDirectory,
        settlement_mode: SettlementCheckMode = SettlementCheckMode.PAYER_ENTRIES
    ):
        self.gateway = gateway
        self.users = users
        self.settlement_mode = settlement_mode
        self._events: dict[int, Event] = {}
        self._lock = threading.RLock()
        self._event_locks: dict[int, threading.RLock] = {}

    def load(self) -> None:
        """Replace the graph with everything the gateway has stored."""
        events = self.gateway.load_all_events()
        with self._lock:
            self._events = {event.id: event for event in events}
        logger.info(f"Loaded {len(events)} event(s) into the ledger")

    # Locking

    def _get_event_lock(self, event_id: int) -> threading.RLock:
        with self._lock:
            lock = self._event_locks.get(event_id)
            if lock is None:
                lock = threading.RLock()
                self._event_locks[event_id] = lock
            return lock

    @contextmanager
    def event_lock(self, event_id: int):
        """Hold the event's lock; use it to read a consistent view of one event."""
        with self._get_event_lock(event_id):
            yield

    # Lookups

    def get_user_events(self, user_id: int) -> list[Event]:
        """Events the user created or participates in."""
        with self._lock:
            return [event for event in self._events.values() if event.is_member(user_id)]

    def fetch_event(self, event_id: int) -> Optional[Event]:
        with self._lock:
            return self._events.get(event_id)

    def get_event(self, event_id: int) -> Event:
        event = self.fetch_event(event_id)
        if event is None:
            raise EntityNotFoundError(f"Event {event_id} does not exist")
        return event

    def get_activity(self, event: Event, activity_id: int) -> Activity:
        activity = event.find_activity(activity_id)
        if activity is None:
            raise EntityNotFoundError(f"Activity {activity_id} does not exist in event {event.id}")
        return activity

    def resolve_users(self, user_ids: Iterable[int]) -> list[User]:
        """Look up every id; raise InvalidReferenceError naming the ones that are missing."""
        users = []
        missing = []
        for user_id in _dedupe(user_ids):
            user = self.users.get_user(user_id)
            if user is None:
                missing.append(user_id)
            else:
                users.append(user)
        if missing:
            raise InvalidReferenceError(missing)
        return users

    # Persistence

    def _persist(self, action: str, call, *args, allow_none: bool = False, **kwargs):
        try:
            result = call(*args, **kwargs)
        except Exception as e:
            logger.exception(f"Failed to {action}: {e}")
            raise PersistenceError(f"Failed to {action}") from e

        if result is False or (result is None and not allow_none):
            logger.error(f"Failed to {action}: gateway reported no result")
            raise PersistenceError(f"Failed to {action}")
        return result

    # Events

    def create_event(self, name: str, date: datetime, creator_id: int, participant_ids: list[int]) -> Event:
        participant_ids = _dedupe(participant_ids)
        self.resolve_users([creator_id, *participant_ids])

        event = self._persist("create event", self.gateway.create_event, name, date, creator_id, participant_ids)

        with self._lock:
            self._events[event.id] = event
        logger.info(f"Created event {event.id} for user {creator_id}")
        return event

    def update_event(self, event_id: int, name: str, date: datetime, participant_ids: list[int]) -> Event:
        with self.event_lock(event_id):
            event = self.get_event(event_id)
            participant_ids = _dedupe(participant_ids)
            self.resolve_users(participant_ids)

            to_add = [p for p in participant_ids if p not in event.participant_ids]
            to_remove = [p for p in event.participant_ids if p not in participant_ids]

            self._persist("update event", self.gateway.update_event, event_id, name, date, to_add, to_remove)

            event.name = name
            event.date = date
            event.participant_ids = participant_ids
            logger.info(f"Updated event {event_id}: +{len(to_add)} / -{len(to_remove)} participant(s)")
            return event

    def delete_event(self, event_id: int) -> None:
        with self.event_lock(event_id):
            self.get_event(event_id)
            self._persist("delete event", self.gateway.delete_event, event_id, allow_none=True)

            with self._lock:
                del self._events[event_id]
                self._event_locks.pop(event_id, None)
        logger.info(f"Deleted event {event_id}")

    # Activities

    def _validate_activity(
        self,
        event: Event,
        payee_id: int,
        gratuity_amount: Decimal,
        items: list[ProposedItem]
    ) -> None:
        if gratuity_amount < 0:
            raise InvalidAllocationError("Gratuity amount cannot be negative")
        if not items:
            raise InvalidAllocationError("An activity needs at least one item")

        for item in items:
            item.validate(payee_id)

        payer_ids = _dedupe(payer_id for item in items for payer_id in item.payers)
        self.resolve_users(payer_ids)

        outsiders = [payer_id for payer_id in payer_ids if not event.is_member(payer_id)]
        if outsiders:
            raise InvalidAllocationError(
                f"Payers must take part in the event: {', '.join(str(i) for i in outsiders)}"
            )

    def create_activity(
        self,
        event_id: int,
        payee_id: int,
        name: str,
        is_gratuity_percent: bool,
        gratuity_amount: Decimal,
        add_five_percent_tax: bool,
        items: list[ProposedItem]
    ) -> Activity:
        with self.event_lock(event_id):
            event = self.get_event(event_id)
            self.resolve_users([payee_id])
            self._validate_activity(event, payee_id, gratuity_amount, items)

            activity = self._persist(
                "create activity",
                self.gateway.create_activity,
                event_id, name, is_gratuity_percent, gratuity_amount,
                add_five_percent_tax, payee_id, items
            )

            event.activities.append(activity)
            logger.info(f"Created activity {activity.id} in event {event_id} with {len(items)} item(s)")
            return activity

    def update_activity(
        self,
        event_id: int,
        activity_id: int,
        name: str,
        is_gratuity_percent: bool,
        gratuity_amount: Decimal,
        add_five_percent_tax: bool,
        items: list[ProposedItem]
    ) -> ItemDiff:
        """Apply an edit, re-creating only the items that changed. Returns the item diff."""
        with self.event_lock(event_id):
            event = self.get_event(event_id)
            activity = self.get_activity(event, activity_id)
            self._validate_activity(event, activity.payee_id, gratuity_amount, items)

            diff = diff_items(activity.items, items)

            new_items = self._persist(
                "update activity",
                self.gateway.update_activity,
                activity_id, name, is_gratuity_percent, gratuity_amount,
                add_five_percent_tax, diff.items_to_add, diff.item_ids_to_remove
            )

            activity.name = name
            activity.is_gratuity_percent = is_gratuity_percent
            activity.gratuity_amount = gratuity_amount
            activity.add_five_percent_tax = add_five_percent_tax
            removed = set(diff.item_ids_to_remove)
            activity.items = [item for item in activity.items if item.id not in removed] + list(new_items)

            logger.info(
                f"Updated activity {activity_id}: +{len(diff.items_to_add)} / -{len(removed)} item(s)"
            )
            return diff

    def delete_activity(self, event_id: int, activity_id: int) -> None:
        with self.event_lock(event_id):
            event = self.get_event(event_id)
            activity = self.get_activity(event, activity_id)
            self._persist("delete activity", self.gateway.delete_activity, activity_id, allow_none=True)
            event.activities.remove(activity)
        logger.info(f"Deleted activity {activity_id} from event {event_id}")

    # Settlement

    def _write_flags(
        self,
        activities: list[Activity],
        payer_id: int,
        has_paid: Optional[bool] = None,
        payment_confirmed: Optional[bool] = None
    ) -> list[int]:
        # Only activities where the payer actually owes something
        activities = [a for a in activities if any(e.payer_id == payer_id for e in a.iter_payers())]
        if not activities:
            return []

        activity_ids = [a.id for a in activities]
        self._persist(
            "update settlement flags",
            self.gateway.update_payer_flags,
            activity_ids, payer_id,
            has_paid=has_paid, payment_confirmed=payment_confirmed
        )

        for activity in activities:
            if has_paid is not None:
                set_has_paid(activity, payer_id, has_paid)
            if payment_confirmed is not None:
                set_payment_confirmed(activity, payer_id, payment_confirmed)
        return activity_ids

    def record_payment(self, event_id: int, creditor_id: int, payer_id: int, has_paid: bool = True) -> list[int]:
        """Payer claims (or withdraws) payment on every activity the creditor paid for."""
        with self.event_lock(event_id):
            event = self.get_event(event_id)
            touched = self._write_flags(creditor_activities(event, creditor_id), payer_id, has_paid=has_paid)
        logger.info(f"User {payer_id} marked paid={has_paid} towards {creditor_id} in event {event_id}")
        return touched

    def confirm_payments(self, event_id: int, creditor_id: int, payer_id: int, confirmed: bool = True) -> list[int]:
        """Creditor confirms (or revokes) the payer's payments on all of their activities."""
        with self.event_lock(event_id):
            event = self.get_event(event_id)
            touched = self._write_flags(
                creditor_activities(event, creditor_id), payer_id, payment_confirmed=confirmed
            )
        logger.info(f"User {creditor_id} marked confirmed={confirmed} for {payer_id} in event {event_id}")
        return touched
