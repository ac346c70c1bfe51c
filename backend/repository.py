"""SQLAlchemy implementations of the ledger's persistence gateway and user directory."""

import logging
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

import models
from ledger.entities import Activity, ActivityItem, ActivityItemPayer, Event, User
from ledger.reconcile import ProposedItem

logger = logging.getLogger(__name__)


class SqlLedgerRepository:
    """
    Persistence gateway backed by the SQL database.

    Every mutating method runs in its own transaction: it either commits
    completely or rolls back and re-raises.
    """

    def __init__(self, session_factory):
        self.session_factory = session_factory

    @contextmanager
    def _transaction(self):
        db: Session = self.session_factory()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    # Events

    def create_event(self, name: str, date: datetime, creator_id: int, participant_ids: list[int]) -> Event:
        with self._transaction() as db:
            db_event = models.Event(name=name, date=date.isoformat(), creator_id=creator_id)
            db.add(db_event)
            db.flush()
            event_id = db_event.id

            for user_id in participant_ids:
                db.add(models.EventParticipant(event_id=event_id, user_id=user_id))

        return Event(
            id=event_id,
            name=name,
            date=date,
            creator_id=creator_id,
            participant_ids=list(participant_ids),
            activities=[]
        )

    def update_event(
        self,
        event_id: int,
        name: str,
        date: datetime,
        add_participant_ids: list[int],
        remove_participant_ids: list[int]
    ) -> bool:
        with self._transaction() as db:
            db_event = db.query(models.Event).filter(models.Event.id == event_id).first()
            if not db_event:
                return False

            db_event.name = name
            db_event.date = date.isoformat()

            for user_id in add_participant_ids:
                db.add(models.EventParticipant(event_id=event_id, user_id=user_id))

            if remove_participant_ids:
                db.query(models.EventParticipant).filter(
                    models.EventParticipant.event_id == event_id,
                    models.EventParticipant.user_id.in_(remove_participant_ids)
                ).delete(synchronize_session=False)

        return True

    def delete_event(self, event_id: int) -> None:
        with self._transaction() as db:
            activity_ids = [
                row.id for row in db.query(models.Activity.id).filter(models.Activity.event_id == event_id).all()
            ]
            for activity_id in activity_ids:
                self._delete_activity_rows(db, activity_id)

            db.query(models.EventParticipant).filter(
                models.EventParticipant.event_id == event_id
            ).delete(synchronize_session=False)
            db.query(models.Event).filter(models.Event.id == event_id).delete(synchronize_session=False)

    # Activities

    def create_activity(
        self,
        event_id: int,
        name: str,
        is_gratuity_percent: bool,
        gratuity_amount: Decimal,
        add_five_percent_tax: bool,
        payee_id: int,
        items: list[ProposedItem]
    ) -> Activity:
        with self._transaction() as db:
            db_activity = models.Activity(
                event_id=event_id,
                name=name,
                payee_id=payee_id,
                is_gratuity_percent=is_gratuity_percent,
                gratuity_amount=str(gratuity_amount),
                add_five_percent_tax=add_five_percent_tax
            )
            db.add(db_activity)
            db.flush()
            activity_id = db_activity.id

            new_items = [self._add_item(db, activity_id, item) for item in items]

        return Activity(
            id=activity_id,
            event_id=event_id,
            name=name,
            payee_id=payee_id,
            is_gratuity_percent=is_gratuity_percent,
            gratuity_amount=gratuity_amount,
            add_five_percent_tax=add_five_percent_tax,
            items=new_items
        )

    def update_activity(
        self,
        activity_id: int,
        name: str,
        is_gratuity_percent: bool,
        gratuity_amount: Decimal,
        add_five_percent_tax: bool,
        items_to_add: list[ProposedItem],
        item_ids_to_remove: list[int]
    ) -> Optional[list[ActivityItem]]:
        with self._transaction() as db:
            db_activity = db.query(models.Activity).filter(models.Activity.id == activity_id).first()
            if not db_activity:
                return None

            db_activity.name = name
            db_activity.is_gratuity_percent = is_gratuity_percent
            db_activity.gratuity_amount = str(gratuity_amount)
            db_activity.add_five_percent_tax = add_five_percent_tax

            if item_ids_to_remove:
                db.query(models.ActivityItemPayer).filter(
                    models.ActivityItemPayer.item_id.in_(item_ids_to_remove)
                ).delete(synchronize_session=False)
                db.query(models.ActivityItem).filter(
                    models.ActivityItem.id.in_(item_ids_to_remove)
                ).delete(synchronize_session=False)

            new_items = [self._add_item(db, activity_id, item) for item in items_to_add]

        return new_items

    def delete_activity(self, activity_id: int) -> None:
        with self._transaction() as db:
            self._delete_activity_rows(db, activity_id)

    def _delete_activity_rows(self, db: Session, activity_id: int) -> None:
        db.query(models.ActivityItemPayer).filter(
            models.ActivityItemPayer.activity_id == activity_id
        ).delete(synchronize_session=False)
        db.query(models.ActivityItem).filter(
            models.ActivityItem.activity_id == activity_id
        ).delete(synchronize_session=False)
        db.query(models.Activity).filter(models.Activity.id == activity_id).delete(synchronize_session=False)

    def _add_item(self, db: Session, activity_id: int, item: ProposedItem) -> ActivityItem:
        db_item = models.ActivityItem(
            activity_id=activity_id,
            name=item.name,
            cost=str(item.cost),
            is_split_evenly=item.is_split_evenly
        )
        db.add(db_item)
        db.flush()

        payers = []
        for user_id, amount in item.payers.items():
            db.add(models.ActivityItemPayer(
                item_id=db_item.id,
                activity_id=activity_id,
                user_id=user_id,
                amount_owing=str(amount),
                has_paid=False,
                payment_confirmed=False
            ))
            payers.append(ActivityItemPayer(payer_id=user_id, amount_owing=amount))

        return ActivityItem(
            id=db_item.id,
            activity_id=activity_id,
            name=item.name,
            cost=item.cost,
            is_split_evenly=item.is_split_evenly,
            payers=payers
        )

    # Settlement

    def update_payer_flags(
        self,
        activity_ids: list[int],
        payer_id: int,
        has_paid: Optional[bool] = None,
        payment_confirmed: Optional[bool] = None
    ) -> bool:
        with self._transaction() as db:
            rows = db.query(models.ActivityItemPayer).filter(
                models.ActivityItemPayer.activity_id.in_(activity_ids),
                models.ActivityItemPayer.user_id == payer_id
            ).all()

            for row in rows:
                if has_paid is not None:
                    row.has_paid = has_paid
                if payment_confirmed is not None:
                    row.payment_confirmed = payment_confirmed

        return True

    # Loading

    def load_all_events(self) -> list[Event]:
        """Read every table once and assemble the full event graph."""
        db: Session = self.session_factory()
        try:
            events = {}
            for row in db.query(models.Event).order_by(models.Event.id).all():
                events[row.id] = Event(
                    id=row.id,
                    name=row.name,
                    date=datetime.fromisoformat(row.date),
                    creator_id=row.creator_id
                )

            for row in db.query(models.EventParticipant).order_by(models.EventParticipant.id).all():
                if row.event_id in events:
                    events[row.event_id].participant_ids.append(row.user_id)

            activities = {}
            for row in db.query(models.Activity).order_by(models.Activity.id).all():
                if row.event_id not in events:
                    logger.warning(f"Skipping activity {row.id}: event {row.event_id} does not exist")
                    continue
                activity = Activity(
                    id=row.id,
                    event_id=row.event_id,
                    name=row.name,
                    payee_id=row.payee_id,
                    is_gratuity_percent=bool(row.is_gratuity_percent),
                    gratuity_amount=Decimal(row.gratuity_amount),
                    add_five_percent_tax=bool(row.add_five_percent_tax)
                )
                events[row.event_id].activities.append(activity)
                activities[row.id] = activity

            items = {}
            for row in db.query(models.ActivityItem).order_by(models.ActivityItem.id).all():
                if row.activity_id not in activities:
                    continue
                item = ActivityItem(
                    id=row.id,
                    activity_id=row.activity_id,
                    name=row.name,
                    cost=Decimal(row.cost),
                    is_split_evenly=bool(row.is_split_evenly)
                )
                activities[row.activity_id].items.append(item)
                items[row.id] = item

            for row in db.query(models.ActivityItemPayer).order_by(models.ActivityItemPayer.id).all():
                if row.item_id not in items:
                    continue
                items[row.item_id].payers.append(ActivityItemPayer(
                    payer_id=row.user_id,
                    amount_owing=Decimal(row.amount_owing),
                    has_paid=bool(row.has_paid),
                    payment_confirmed=bool(row.payment_confirmed)
                ))

            return list(events.values())
        finally:
            db.close()


class SqlUserDirectory:
    """Resolves user ids against the users table."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def get_user(self, user_id: int) -> Optional[User]:
        db: Session = self.session_factory()
        try:
            db_user = db.query(models.User).filter(models.User.id == user_id).first()
            if not db_user:
                return None

            connections = db.query(models.UserConnection).filter(
                or_(
                    models.UserConnection.user_id == user_id,
                    models.UserConnection.other_user_id == user_id
                )
            ).all()

            user = User(
                id=db_user.id,
                display_name=db_user.display_name,
                email=db_user.email,
                phone_number=db_user.phone_number
            )
            for c in connections:
                other_id = c.other_user_id if c.user_id == user_id else c.user_id
                if c.connection_type == "friend":
                    user.friend_ids.append(other_id)
                elif c.user_id == user_id:
                    user.outgoing_request_ids.append(other_id)
                else:
                    user.incoming_request_ids.append(other_id)
            return user
        finally:
            db.close()
