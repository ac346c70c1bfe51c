"""In-memory ledger entities: users, events, activities, items and payers.

Ownership is strictly tree-shaped (Event -> Activity -> ActivityItem ->
ActivityItemPayer). Every other reference is an id resolved through the
LedgerStore or the user directory.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional


@dataclass
class User:
    """A registered user. Relationship lists hold user ids only."""
    id: int
    display_name: str
    email: str
    phone_number: Optional[str] = None
    friend_ids: list[int] = field(default_factory=list)
    incoming_request_ids: list[int] = field(default_factory=list)
    outgoing_request_ids: list[int] = field(default_factory=list)


@dataclass
class ActivityItemPayer:
    """One payer's share of an item plus its settlement flags."""
    payer_id: int
    amount_owing: Decimal
    has_paid: bool = False
    payment_confirmed: bool = False


@dataclass
class ActivityItem:
    id: int
    activity_id: int
    name: str
    cost: Decimal
    is_split_evenly: bool
    payers: list[ActivityItemPayer] = field(default_factory=list)

    def find_payer(self, user_id: int) -> Optional[ActivityItemPayer]:
        for payer in self.payers:
            if payer.payer_id == user_id:
                return payer
        return None


@dataclass
class Activity:
    """One payee-funded expense inside an event."""
    id: int
    event_id: int
    name: str
    payee_id: int
    is_gratuity_percent: bool
    gratuity_amount: Decimal
    add_five_percent_tax: bool
    items: list[ActivityItem] = field(default_factory=list)

    def iter_payers(self):
        """Yield every item-payer entry of the activity, item by item."""
        for item in self.items:
            yield from item.payers


@dataclass
class Event:
    id: int
    name: str
    date: datetime
    creator_id: int
    participant_ids: list[int] = field(default_factory=list)
    activities: list[Activity] = field(default_factory=list)

    def find_activity(self, activity_id: int) -> Optional[Activity]:
        for activity in self.activities:
            if activity.id == activity_id:
                return activity
        return None

    def is_member(self, user_id: int) -> bool:
        """Creator or listed participant."""
        return self.creator_id == user_id or user_id in self.participant_ids
