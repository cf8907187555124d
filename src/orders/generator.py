"""
Order generator.

Produces one order per trigger tick. Ids come from an owned counter
whose increment is lock-protected, so concurrent callers never see
gaps or repeats.
"""

import random
import threading

from src.orders.models import Order, description_for_item, item_for_id
from src.utils.logging import get_logger

logger = get_logger(__name__)

MIN_AMOUNT = 1
MAX_AMOUNT = 10


class AtomicCounter:
    """Integer cell with an atomic increment."""

    def __init__(self, initial: int = 0) -> None:
        self._value = initial
        self._lock = threading.Lock()

    def increment_and_get(self) -> int:
        with self._lock:
            self._value += 1
            return self._value

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


class OrderGenerator:
    """
    Generates book orders with monotonically increasing ids.

    The item and description are derived from the id parity at
    generation time; the amount is resampled for every order.
    """

    def __init__(
        self,
        counter: AtomicCounter | None = None,
        rng: random.Random | None = None,
    ) -> None:
        """
        Initialize the generator.

        Args:
            counter: Id counter owned by this generator (fresh one if None)
            rng: Random source for amounts (seedable in tests)
        """
        self._counter = counter or AtomicCounter()
        self._rng = rng or random.Random()

    def generate(self) -> Order:
        """Generate the next order."""
        order_id = self._counter.increment_and_get()
        item = item_for_id(order_id)

        order = Order(
            id=order_id,
            item=item,
            amount=self._rng.randint(MIN_AMOUNT, MAX_AMOUNT),
            description=description_for_item(item),
        )

        logger.debug("Order generated", order_id=order.id, item=order.item)
        return order

    @property
    def last_id(self) -> int:
        """Id of the most recently generated order (0 before the first)."""
        return self._counter.value
