"""
Branch selection for generated orders.
"""

from enum import Enum

from src.orders.models import CAMEL_ITEM, Order


class Branch(str, Enum):
    """Routing outcome; decides the encoding and the destination topic."""

    CAMEL = "camel"
    STRIMZI = "strimzi"


def route(order: Order) -> Branch:
    """Camel books go to the CAMEL branch, everything else to STRIMZI."""
    if order.item == CAMEL_ITEM:
        return Branch.CAMEL
    return Branch.STRIMZI
