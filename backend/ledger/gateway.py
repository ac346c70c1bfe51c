"""Contracts the ledger store needs from persistence and user lookup.

Mutating gateway calls must be all-or-nothing. A call that raises, or that
returns None/False, is treated by the store as "did not happen".
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional, Protocol

from ledger.entities import Activity, ActivityItem, Event, User
from ledger.reconcile import ProposedItem


class PersistenceGateway(Protocol):

    def create_event(
        self, name: str, date: datetime, creator_id: int, participant_ids: list[int]
    ) -> Optional[Event]: ...

    def update_event(
        self,
        event_id: int,
        name: str,
        date: datetime,
        add_participant_ids: list[int],
        remove_participant_ids: list[int]
    ) -> bool: ...

    def delete_event(self, event_id: int) -> None: ...

    def create_activity(
        self,
        event_id: int,
        name: str,
        is_gratuity_percent: bool,
        gratuity_amount: Decimal,
        add_five_percent_tax: bool,
        payee_id: int,
        items: list[ProposedItem]
    ) -> Optional[Activity]: ...

    def update_activity(
        self,
        activity_id: int,
        name: str,
        is_gratuity_percent: bool,
        gratuity_amount: Decimal,
        add_five_percent_tax: bool,
        items_to_add: list[ProposedItem],
        item_ids_to_remove: list[int]
    ) -> Optional[list[ActivityItem]]: ...

    def delete_activity(self, activity_id: int) -> None: ...

    def update_payer_flags(
        self,
        activity_ids: list[int],
        payer_id: int,
        has_paid: Optional[bool] = None,
        payment_confirmed: Optional[bool] = None
    ) -> bool: ...

    def load_all_events(self) -> list[Event]: ...


class UserDirectory(Protocol):

    def get_user(self, user_id: int) -> Optional[User]: ...
