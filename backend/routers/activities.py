"""Activities router: create, read, update, delete activities inside an event."""

from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException

import schemas
from dependencies import get_current_user, get_ledger_store
from ledger.amortization import activity_subtotal, get_payers, total_amount_owed, total_amount_owing
from ledger.entities import Activity, ActivityItemPayer, User
from ledger.store import LedgerStore
from utils.display import get_user_display_name, resolve_display_users, round_amount
from utils.validation import (
    get_activity_or_404,
    get_event_or_404,
    ledger_errors_as_http,
    verify_activity_payee,
    verify_event_membership,
)


router = APIRouter(prefix="/events/{event_id}/activities", tags=["activities"])


def build_payer(users: dict[int, User], payer: ActivityItemPayer, rounded: bool = False) -> schemas.ActivityPayer:
    user = users[payer.payer_id]
    return schemas.ActivityPayer(
        payer_id=payer.payer_id,
        payer_name=get_user_display_name(user),
        payer_email=user.email,
        amount_owing=round_amount(payer.amount_owing) if rounded else payer.amount_owing,
        has_paid=payer.has_paid,
        payment_confirmed=payer.payment_confirmed
    )


def build_activity_detail(store: LedgerStore, activity: Activity, user_id: int) -> schemas.ActivityDetail:
    """Assemble the activity as seen by one user. Caller must hold the event lock."""
    is_payee = activity.payee_id == user_id
    amount = total_amount_owed(activity, user_id) if is_payee else total_amount_owing(activity, user_id)
    users = resolve_display_users(store, [activity.payee_id, *(p.payer_id for p in activity.iter_payers())])
    payee = users[activity.payee_id]

    return schemas.ActivityDetail(
        id=activity.id,
        name=activity.name,
        is_payee=is_payee,
        amount=round_amount(amount),
        is_gratuity_percent=activity.is_gratuity_percent,
        gratuity_amount=activity.gratuity_amount,
        add_five_percent_tax=activity.add_five_percent_tax,
        subtotal=activity_subtotal(activity),
        payee=schemas.UserPublic(
            id=payee.id,
            display_name=get_user_display_name(payee),
            email=payee.email,
            phone_number=payee.phone_number
        ),
        items=[
            schemas.ActivityItemDetail(
                item_id=item.id,
                item_name=item.name,
                item_cost=item.cost,
                is_split_evenly=item.is_split_evenly,
                payers=[build_payer(users, payer) for payer in item.payers]
            )
            for item in activity.items
        ],
        payers=[build_payer(users, payer, rounded=True) for payer in get_payers(activity)]
    )


@router.post("", response_model=schemas.ActivityCreated)
def create_activity(
    event_id: int,
    activity: schemas.ActivityCreate,
    current_user: Annotated[User, Depends(get_current_user)],
    store: LedgerStore = Depends(get_ledger_store)
):
    event = get_event_or_404(store, event_id)
    verify_event_membership(event, current_user.id)

    # The requester paid for the activity and is owed by its payers
    with ledger_errors_as_http():
        created = store.create_activity(
            event_id,
            payee_id=current_user.id,
            name=activity.name,
            is_gratuity_percent=activity.is_gratuity_percent,
            gratuity_amount=activity.gratuity_amount,
            add_five_percent_tax=activity.add_five_percent_tax,
            items=activity.proposed_items()
        )
    return schemas.ActivityCreated(id=created.id)


@router.get("/{activity_id}", response_model=schemas.ActivityDetail)
def get_activity(
    event_id: int,
    activity_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    store: LedgerStore = Depends(get_ledger_store)
):
    event = get_event_or_404(store, event_id)
    verify_event_membership(event, current_user.id)

    with store.event_lock(event_id):
        activity = get_activity_or_404(event, activity_id)
        return build_activity_detail(store, activity, current_user.id)


@router.put("/{activity_id}", response_model=schemas.ActivityUpdated)
def update_activity(
    event_id: int,
    activity_id: int,
    activity_update: schemas.ActivityUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    store: LedgerStore = Depends(get_ledger_store)
):
    event = get_event_or_404(store, event_id)
    verify_event_membership(event, current_user.id)
    activity = get_activity_or_404(event, activity_id)
    verify_activity_payee(activity, current_user.id)

    with ledger_errors_as_http():
        diff = store.update_activity(
            event_id,
            activity_id,
            name=activity_update.name,
            is_gratuity_percent=activity_update.is_gratuity_percent,
            gratuity_amount=activity_update.gratuity_amount,
            add_five_percent_tax=activity_update.add_five_percent_tax,
            items=activity_update.proposed_items()
        )

    return schemas.ActivityUpdated(
        items_added=len(diff.items_to_add),
        item_ids_removed=diff.item_ids_to_remove
    )


@router.delete("/{activity_id}")
def delete_activity(
    event_id: int,
    activity_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    store: LedgerStore = Depends(get_ledger_store)
):
    event = get_event_or_404(store, event_id)
    verify_event_membership(event, current_user.id)
    activity = get_activity_or_404(event, activity_id)

    # Payee or the event creator can delete
    if activity.payee_id != current_user.id and event.creator_id != current_user.id:
        raise HTTPException(status_code=403, detail="Only the activity payee or event creator can delete this activity")

    with ledger_errors_as_http():
        store.delete_activity(event_id, activity_id)

    return {"message": "Activity deleted successfully"}
