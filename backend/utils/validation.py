"""Validation utilities for user lookup, event access control and ledger error translation."""

from contextlib import contextmanager
from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

import models
from ledger.entities import Activity, Event
from ledger.exceptions import (
    EntityNotFoundError,
    InvalidAllocationError,
    InvalidReferenceError,
    PersistenceError,
)
from ledger.store import LedgerStore


def get_user_by_email(db: Session, email: str):
    """Get a user by their email address, ignoring case."""
    return db.query(models.User).filter(func.lower(models.User.email) == email.lower()).first()


def get_event_or_404(store: LedgerStore, event_id: int) -> Event:
    """Get an event by ID or raise 404 if not found."""
    event = store.fetch_event(event_id)
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")
    return event


def verify_event_membership(event: Event, user_id: int) -> None:
    """Verify that a user is the creator or a participant of an event, raise 403 if not."""
    if not event.is_member(user_id):
        raise HTTPException(status_code=403, detail="You have no access to this event")


def verify_event_ownership(event: Event, user_id: int) -> None:
    """Verify that a user created an event, raise 403 if not."""
    if event.creator_id != user_id:
        raise HTTPException(status_code=403, detail="Only the event creator can perform this action")


def get_activity_or_404(event: Event, activity_id: int) -> Activity:
    """Get an activity of an event or raise 404 if not found."""
    activity = event.find_activity(activity_id)
    if not activity:
        raise HTTPException(status_code=404, detail="Activity not found")
    return activity


def verify_activity_payee(activity: Activity, user_id: int) -> None:
    """Verify that a user paid for an activity, raise 403 if not."""
    if activity.payee_id != user_id:
        raise HTTPException(status_code=403, detail="Only the activity payee can perform this action")


@contextmanager
def ledger_errors_as_http():
    """Translate ledger errors raised inside the block into HTTP errors."""
    try:
        yield
    except InvalidReferenceError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except InvalidAllocationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=f"Server Error: {e}")
