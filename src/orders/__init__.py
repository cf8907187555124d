"""
Book order records and their generator.
"""

from .exceptions import BookOrderError, EncodingError, PublishError
from .generator import AtomicCounter, OrderGenerator
from .models import (
    CAMEL_DESCRIPTION,
    CAMEL_ITEM,
    ORDER_FIELDS,
    STRIMZI_DESCRIPTION,
    STRIMZI_ITEM,
    Order,
)

__all__ = [
    # Models
    "Order",
    "ORDER_FIELDS",
    "CAMEL_ITEM",
    "STRIMZI_ITEM",
    "CAMEL_DESCRIPTION",
    "STRIMZI_DESCRIPTION",
    # Generator
    "AtomicCounter",
    "OrderGenerator",
    # Errors
    "BookOrderError",
    "EncodingError",
    "PublishError",
]
