"""
Order record published by the pipeline.

Field names match the wire contract of both topics.
"""

from dataclasses import dataclass
from typing import Any

CAMEL_ITEM = "Camel"
STRIMZI_ITEM = "Strimzi"

CAMEL_DESCRIPTION = "Camel in Action"
STRIMZI_DESCRIPTION = "Strimzi in Action"

# Wire order of fields, shared by the JSON and XML encoders
ORDER_FIELDS: tuple[tuple[str, type], ...] = (
    ("id", int),
    ("item", str),
    ("amount", int),
    ("description", str),
)


@dataclass(frozen=True)
class Order:
    """A single book order."""

    id: int
    item: str
    amount: int
    description: str

    @property
    def is_camel(self) -> bool:
        return self.item == CAMEL_ITEM

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary in wire field order."""
        return {name: getattr(self, name) for name, _ in ORDER_FIELDS}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Order":
        """Build an order from a mapping with the wire field names."""
        return cls(
            id=data["id"],
            item=data["item"],
            amount=data["amount"],
            description=data["description"],
        )


def item_for_id(order_id: int) -> str:
    """Even ids are Camel books, odd ids are Strimzi books."""
    return CAMEL_ITEM if order_id % 2 == 0 else STRIMZI_ITEM


def description_for_item(item: str) -> str:
    return CAMEL_DESCRIPTION if item == CAMEL_ITEM else STRIMZI_DESCRIPTION
