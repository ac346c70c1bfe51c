"""Events router: create, read, update, delete events and the per-user event view."""

from typing import Annotated
from fastapi import APIRouter, Depends

import schemas
from dependencies import get_current_user, get_ledger_store
from ledger.amortization import total_amount_owed, total_amount_owing
from ledger.entities import Event, User
from ledger.netting import (
    counterparties,
    get_active_participants,
    get_net_amount_between_users,
    get_user_total_owed,
    get_user_total_owing,
)
from ledger.settlement import has_creditor_confirmed_payments, has_payer_settled_debt
from ledger.store import LedgerStore
from utils.display import get_user_display_name, get_user_or_placeholder, round_amount
from utils.validation import (
    get_event_or_404,
    ledger_errors_as_http,
    verify_event_membership,
    verify_event_ownership,
)


router = APIRouter(prefix="/events", tags=["events"])


def build_event_summary(store: LedgerStore, event: Event, user_id: int) -> schemas.EventSummary:
    with store.event_lock(event.id):
        return schemas.EventSummary(
            id=event.id,
            name=event.name,
            date=event.date,
            creator_id=event.creator_id,
            created_event=event.creator_id == user_id,
            user_total_owed=round_amount(get_user_total_owed(event, user_id)),
            user_total_owing=round_amount(get_user_total_owing(event, user_id))
        )


def get_user_events_by_date(store: LedgerStore, user_id: int) -> list[Event]:
    """The user's events, oldest first."""
    return sorted(store.get_user_events(user_id), key=lambda event: event.date)


def build_event_detail(store: LedgerStore, event: Event, user_id: int) -> schemas.EventDetail:
    """Assemble the event as seen by one user. Caller must hold the event lock."""
    mode = store.settlement_mode

    activities = []
    for activity in event.activities:
        is_payee = activity.payee_id == user_id
        amount = total_amount_owed(activity, user_id) if is_payee else total_amount_owing(activity, user_id)
        activities.append(schemas.EventActivitySummary(
            activity_id=activity.id,
            name=activity.name,
            owed_money=is_payee,
            amount=round_amount(amount)
        ))

    participants = []
    for other_id in counterparties(event, user_id):
        other = get_user_or_placeholder(store, other_id)
        amount_owed = round_amount(get_net_amount_between_users(event, user_id, other_id))

        # Flags describe whichever direction the remaining debt runs
        if amount_owed > 0:
            has_paid = has_payer_settled_debt(event, user_id, other_id, mode)
            confirmed = has_creditor_confirmed_payments(event, user_id, other_id, mode)
        else:
            has_paid = has_payer_settled_debt(event, other_id, user_id, mode)
            confirmed = has_creditor_confirmed_payments(event, other_id, user_id, mode)

        participants.append(schemas.EventParticipantBalance(
            user_id=other_id,
            display_name=get_user_display_name(other),
            email=other.email,
            amount_owed_to_you=amount_owed,
            has_paid=has_paid,
            payment_confirmed=confirmed
        ))

    return schemas.EventDetail(
        id=event.id,
        name=event.name,
        date=event.date,
        created_event=event.creator_id == user_id,
        activities=activities,
        participants=participants,
        active_participants=get_active_participants(event),
        user_total_owed=round_amount(get_user_total_owed(event, user_id)),
        user_total_owing=round_amount(get_user_total_owing(event, user_id))
    )


@router.get("", response_model=list[schemas.EventSummary])
def read_events(
    current_user: Annotated[User, Depends(get_current_user)],
    store: LedgerStore = Depends(get_ledger_store)
):
    return [build_event_summary(store, event, current_user.id) for event in get_user_events_by_date(store, current_user.id)]


@router.post("", response_model=schemas.EventCreated)
def create_event(
    event: schemas.EventCreate,
    current_user: Annotated[User, Depends(get_current_user)],
    store: LedgerStore = Depends(get_ledger_store)
):
    with ledger_errors_as_http():
        created = store.create_event(event.name, event.date, current_user.id, event.participants)
    return schemas.EventCreated(id=created.id)


@router.get("/{event_id}", response_model=schemas.EventDetail)
def get_event(
    event_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    store: LedgerStore = Depends(get_ledger_store)
):
    event = get_event_or_404(store, event_id)
    verify_event_membership(event, current_user.id)

    with store.event_lock(event_id):
        return build_event_detail(store, event, current_user.id)


@router.put("/{event_id}", response_model=schemas.EventSummary)
def update_event(
    event_id: int,
    event_update: schemas.EventUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    store: LedgerStore = Depends(get_ledger_store)
):
    event = get_event_or_404(store, event_id)
    verify_event_ownership(event, current_user.id)

    with ledger_errors_as_http():
        event = store.update_event(event_id, event_update.name, event_update.date, event_update.participants)
    return build_event_summary(store, event, current_user.id)


@router.delete("/{event_id}")
def delete_event(
    event_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    store: LedgerStore = Depends(get_ledger_store)
):
    event = get_event_or_404(store, event_id)
    verify_event_ownership(event, current_user.id)

    with ledger_errors_as_http():
        store.delete_event(event_id)

    return {"message": "Event deleted successfully"}
