"""
Kafka streaming for book orders.

Components:
- Publisher: Async Kafka producer with an explicit acknowledgment level
- Consumer: Async Kafka consumer bound to one topic and one group

Data Flow:
    OrderPipeline → OrderPublisher → camel-book / strimzi-book → BookConsumer
"""

from .consumer import BookConsumer, create_book_consumers, deserialize_message
from .producer import AckLevel, OrderPublisher, PublishReceipt

__all__ = [
    # Publisher
    "AckLevel",
    "OrderPublisher",
    "PublishReceipt",
    # Consumer
    "BookConsumer",
    "create_book_consumers",
    "deserialize_message",
]
