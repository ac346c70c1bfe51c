"""Item reconciliation for activity edits.

Existing items are compared structurally with the proposed list so only items
that actually changed get deleted and re-created.
"""

from dataclasses import dataclass, field
from decimal import Decimal

from ledger.entities import ActivityItem
from ledger.exceptions import InvalidAllocationError


# Shares may exceed the item cost by at most one cent (even-split rounding)
ALLOCATION_TOLERANCE = Decimal("0.01")


@dataclass(eq=False)
class ProposedItem:
    """An item as submitted by a caller: name, cost, split flag and payer shares."""
    name: str
    cost: Decimal
    is_split_evenly: bool
    payers: dict[int, Decimal] = field(default_factory=dict)

    @classmethod
    def from_item(cls, item: ActivityItem) -> "ProposedItem":
        return cls(
            name=item.name,
            cost=item.cost,
            is_split_evenly=item.is_split_evenly,
            payers={payer.payer_id: payer.amount_owing for payer in item.payers}
        )

    def __eq__(self, other):
        if not isinstance(other, ProposedItem):
            return NotImplemented
        return (
            self.name == other.name and
            self.cost == other.cost and
            self.is_split_evenly == other.is_split_evenly and
            self.payers == other.payers
        )

    def __hash__(self):
        # Sorted so equal payer maps hash the same whatever their insertion order
        return hash((self.name, self.cost, self.is_split_evenly, tuple(sorted(self.payers.items()))))

    def validate(self, payee_id: int) -> None:
        """Raise InvalidAllocationError if the item cannot enter the ledger."""
        if not self.name or not self.name.strip():
            raise InvalidAllocationError("All items must have a name")
        if self.cost <= 0:
            raise InvalidAllocationError(f"Item '{self.name}' must have a positive cost")
        if not self.payers:
            raise InvalidAllocationError(f"Item '{self.name}' must have at least one payer")
        if payee_id in self.payers:
            raise InvalidAllocationError(f"The payee cannot be a payer of item '{self.name}'")

        for payer_id, amount in self.payers.items():
            if amount <= 0:
                raise InvalidAllocationError(
                    f"Payer {payer_id} must owe a positive amount for item '{self.name}'"
                )

        allocated = sum(self.payers.values(), Decimal(0))
        if allocated - self.cost > ALLOCATION_TOLERANCE:
            raise InvalidAllocationError(
                f"Payer shares exceed the cost of item '{self.name}'. Cost: {self.cost}, Sum: {allocated}"
            )


@dataclass
class ItemDiff:
    items_to_add: list[ProposedItem]
    item_ids_to_remove: list[int]

    @property
    def is_empty(self) -> bool:
        return not self.items_to_add and not self.item_ids_to_remove


def diff_items(existing_items: list[ActivityItem], proposed_items: list[ProposedItem]) -> ItemDiff:
    """
    Work out which items an edit adds and which it removes.

    Items equal on both sides are left alone and appear in neither list.
    Comparison is by set membership, so duplicate items collapse.

    Args:
        existing_items: Items currently stored on the activity
        proposed_items: Item list submitted by the caller

    Returns:
        ItemDiff with the proposed items to create and the existing item ids to delete
    """
    existing_set = {ProposedItem.from_item(item) for item in existing_items}
    items_to_add = [item for item in proposed_items if item not in existing_set]

    proposed_set = set(proposed_items)
    item_ids_to_remove = [
        item.id for item in existing_items
        if ProposedItem.from_item(item) not in proposed_set
    ]

    return ItemDiff(items_to_add=items_to_add, item_ids_to_remove=item_ids_to_remove)
