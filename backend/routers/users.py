"""Users router: the signed-in user's dashboard across all their events."""

from decimal import Decimal
from typing import Annotated
from fastapi import APIRouter, Depends

import schemas
from dependencies import get_current_user, get_ledger_store
from ledger.entities import User
from ledger.netting import get_user_total_owed, get_user_total_owing
from ledger.store import LedgerStore
from routers.events import build_event_summary, get_user_events_by_date
from utils.display import get_user_display_name, round_amount


router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=schemas.UserDashboard)
def read_users_me(
    current_user: Annotated[User, Depends(get_current_user)],
    store: LedgerStore = Depends(get_ledger_store)
):
    summaries = []
    total_owed = Decimal("0")
    total_owing = Decimal("0")
    for event in get_user_events_by_date(store, current_user.id):
        with store.event_lock(event.id):
            # Grand totals add the exact per-event amounts and round once
            total_owed += get_user_total_owed(event, current_user.id)
            total_owing += get_user_total_owing(event, current_user.id)
            summaries.append(build_event_summary(store, event, current_user.id))

    return schemas.UserDashboard(
        id=current_user.id,
        display_name=get_user_display_name(current_user),
        email=current_user.email,
        events=summaries,
        user_total_owed=round_amount(total_owed),
        user_total_owing=round_amount(total_owing)
    )
