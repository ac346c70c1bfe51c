"""Settlements router: payers claim payment, creditors confirm it."""

from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException

import schemas
from dependencies import get_current_user, get_ledger_store
from ledger.entities import Event, User
from ledger.netting import get_net_amount_between_users
from ledger.settlement import has_creditor_confirmed_payments, has_payer_settled_debt
from ledger.store import LedgerStore
from utils.display import round_amount
from utils.validation import get_event_or_404, ledger_errors_as_http, verify_event_membership


router = APIRouter(prefix="/events/{event_id}/settlements", tags=["settlements"])


def build_settlement_status(
    store: LedgerStore,
    event: Event,
    creditor_id: int,
    payer_id: int,
    activity_ids: list[int]
) -> schemas.SettlementStatus:
    mode = store.settlement_mode
    with store.event_lock(event.id):
        return schemas.SettlementStatus(
            creditor_id=creditor_id,
            payer_id=payer_id,
            activity_ids=activity_ids,
            has_paid=has_payer_settled_debt(event, creditor_id, payer_id, mode),
            payment_confirmed=has_creditor_confirmed_payments(event, creditor_id, payer_id, mode),
            net_amount=round_amount(get_net_amount_between_users(event, creditor_id, payer_id))
        )


@router.post("/paid", response_model=schemas.SettlementStatus)
def claim_payment(
    event_id: int,
    claim: schemas.PaymentClaim,
    current_user: Annotated[User, Depends(get_current_user)],
    store: LedgerStore = Depends(get_ledger_store)
):
    event = get_event_or_404(store, event_id)
    verify_event_membership(event, current_user.id)
    if claim.creditor_id == current_user.id:
        raise HTTPException(status_code=400, detail="You cannot pay yourself")
    if not event.is_member(claim.creditor_id):
        raise HTTPException(status_code=400, detail="Creditor is not part of this event")

    with ledger_errors_as_http():
        activity_ids = store.record_payment(event_id, claim.creditor_id, current_user.id, claim.has_paid)

    return build_settlement_status(store, event, claim.creditor_id, current_user.id, activity_ids)


@router.post("/confirm", response_model=schemas.SettlementStatus)
def confirm_payment(
    event_id: int,
    confirmation: schemas.PaymentConfirmation,
    current_user: Annotated[User, Depends(get_current_user)],
    store: LedgerStore = Depends(get_ledger_store)
):
    event = get_event_or_404(store, event_id)
    verify_event_membership(event, current_user.id)
    if confirmation.payer_id == current_user.id:
        raise HTTPException(status_code=400, detail="You cannot confirm your own payment")
    if not event.is_member(confirmation.payer_id):
        raise HTTPException(status_code=400, detail="Payer is not part of this event")

    with ledger_errors_as_http():
        activity_ids = store.confirm_payments(event_id, current_user.id, confirmation.payer_id, confirmation.confirmed)

    return build_settlement_status(store, event, current_user.id, confirmation.payer_id, activity_ids)
