from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field, field_validator
from typing import Annotated, Optional

from ledger.reconcile import ProposedItem

# Money as entered: at most 10 integer digits and whole cents
Amount = Annotated[Decimal, Field(max_digits=12, decimal_places=2)]

class UserPublic(BaseModel):
    id: int
    display_name: str
    email: str
    phone_number: Optional[str] = None

    class Config:
        from_attributes = True

# Friend schemas
class FriendRequest(BaseModel):
    email: str

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        if not v.strip():
            raise ValueError('Email cannot be empty')
        return v.strip()

class FriendResponse(BaseModel):
    other_user_id: int
    accepted: bool

class FriendList(BaseModel):
    friends: list[UserPublic]
    incoming_requests: list[UserPublic]
    outgoing_requests: list[UserPublic]

# Event schemas
class EventBase(BaseModel):
    name: str
    date: datetime
    participants: list[int] = []

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError('Event name cannot be empty')
        return v.strip()

class EventCreate(EventBase):
    pass

class EventUpdate(EventBase):
    pass

class EventCreated(BaseModel):
    id: int

class EventSummary(BaseModel):
    id: int
    name: str
    date: datetime
    creator_id: int
    created_event: bool
    user_total_owed: Decimal
    user_total_owing: Decimal

class UserDashboard(BaseModel):
    id: int
    display_name: str
    email: str
    events: list[EventSummary]  # Oldest first
    user_total_owed: Decimal
    user_total_owing: Decimal

class EventActivitySummary(BaseModel):
    activity_id: int
    name: str
    owed_money: bool  # True if the requesting user paid for this activity
    amount: Decimal

class EventParticipantBalance(BaseModel):
    user_id: int
    display_name: str
    email: str
    amount_owed_to_you: Decimal  # Positive means they owe you, negative means you owe them
    has_paid: bool
    payment_confirmed: bool

class EventDetail(BaseModel):
    id: int
    name: str
    date: datetime
    created_event: bool
    activities: list[EventActivitySummary]
    participants: list[EventParticipantBalance]
    active_participants: list[int]
    user_total_owed: Decimal
    user_total_owing: Decimal

# Activity schemas
class ActivityItemCreate(BaseModel):
    item_name: str
    item_cost: Amount
    is_split_evenly: bool = True
    payers: dict[int, Amount]  # payer user id -> amount owing, allocated by the client

    @field_validator('item_name')
    @classmethod
    def validate_item_name(cls, v):
        if not v.strip():
            raise ValueError('All items must have a name')
        return v.strip()

    @field_validator('item_cost')
    @classmethod
    def validate_item_cost(cls, v):
        if v <= 0:
            raise ValueError('All items must have a valid cost')
        return v

    @field_validator('payers')
    @classmethod
    def validate_payers(cls, v):
        if not v:
            raise ValueError('All items must have a payer')
        if any(amount <= 0 for amount in v.values()):
            raise ValueError('Payer amounts must be positive')
        return v

    def to_proposed(self) -> ProposedItem:
        return ProposedItem(
            name=self.item_name,
            cost=self.item_cost,
            is_split_evenly=self.is_split_evenly,
            payers=dict(self.payers)
        )

class ActivityBase(BaseModel):
    name: str
    is_gratuity_percent: bool = False
    gratuity_amount: Decimal = Field(default=Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    add_five_percent_tax: bool = False
    items: list[ActivityItemCreate] = Field(min_length=1)

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError('Activity name cannot be empty')
        return v.strip()

    def proposed_items(self) -> list[ProposedItem]:
        return [item.to_proposed() for item in self.items]

class ActivityCreate(ActivityBase):
    pass

class ActivityUpdate(ActivityBase):
    pass

class ActivityCreated(BaseModel):
    id: int

class ActivityUpdated(BaseModel):
    items_added: int
    item_ids_removed: list[int]

class ActivityPayer(BaseModel):
    payer_id: int
    payer_name: str
    payer_email: str
    amount_owing: Decimal
    has_paid: bool = False
    payment_confirmed: bool = False

class ActivityItemDetail(BaseModel):
    item_id: int
    item_name: str
    item_cost: Decimal
    is_split_evenly: bool
    payers: list[ActivityPayer]

class ActivityDetail(BaseModel):
    id: int
    name: str
    is_payee: bool
    amount: Decimal  # Owed to the requester if payee, otherwise owed by the requester
    is_gratuity_percent: bool
    gratuity_amount: Decimal
    add_five_percent_tax: bool
    subtotal: Decimal
    payee: UserPublic
    items: list[ActivityItemDetail]
    payers: list[ActivityPayer]  # Aggregated across items, tax and gratuity included

# Settlement schemas
class PaymentClaim(BaseModel):
    creditor_id: int
    has_paid: bool = True

class PaymentConfirmation(BaseModel):
    payer_id: int
    confirmed: bool = True

class SettlementStatus(BaseModel):
    creditor_id: int
    payer_id: int
    activity_ids: list[int]
    has_paid: bool
    payment_confirmed: bool
    net_amount: Decimal  # What the payer still owes the creditor after confirmed payments
