"""
Error types raised by the order pipeline.

Both errors are local to a single pipeline run: the pipeline logs them
and moves on to the next tick.
"""


class BookOrderError(Exception):
    """Base class for order pipeline errors."""


class EncodingError(BookOrderError):
    """An order could not be serialized or deserialized."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class PublishError(BookOrderError):
    """The broker rejected a write or did not acknowledge it in time."""

    def __init__(self, topic: str, reason: str) -> None:
        super().__init__(f"Failed to publish to {topic}: {reason}")
        self.topic = topic
        self.reason = reason
