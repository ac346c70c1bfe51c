"""
Display utilities for user names and money amounts
"""
from decimal import Decimal, ROUND_HALF_EVEN
from typing import Iterable

from ledger.entities import User
from ledger.store import LedgerStore


CENTS = Decimal("0.01")


def round_amount(amount: Decimal) -> Decimal:
    """
    Round a ledger amount to 2 decimal places for display.
    Uses banker's rounding. Only applied to API responses, never stored.
    Example: Decimal("3.335") -> Decimal("3.34"), Decimal("3.345") -> Decimal("3.34")
    """
    return amount.quantize(CENTS, rounding=ROUND_HALF_EVEN)


def get_user_display_name(user: User) -> str:
    """
    Get the display name for a user.
    Uses display_name if available, otherwise the email.
    """
    if not user:
        return "Unknown User"

    return user.display_name or user.email


def get_user_or_placeholder(store: LedgerStore, user_id: int) -> User:
    """
    Look up a user for display purposes.
    A user removed from the directory still shows up in old activities, so
    a placeholder is returned instead of failing the whole response.
    """
    user = store.users.get_user(user_id)
    if user is None:
        return User(id=user_id, display_name="Unknown User", email="")
    return user


def resolve_display_users(store: LedgerStore, user_ids: Iterable[int]) -> dict[int, User]:
    """Look up each distinct id once for a response, placeholders included."""
    users = {}
    for user_id in user_ids:
        if user_id not in users:
            users[user_id] = get_user_or_placeholder(store, user_id)
    return users
