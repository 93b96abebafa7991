"""Publishes trades and order book depth to depth feed subscribers."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Iterable

from .messages import (
    ASKS,
    BIDS,
    COST,
    LEVEL_NUM,
    ORDER_COUNT,
    PRICE,
    QTY,
    SIZE,
    SYMBOL,
    TIMESTAMP,
)
from .types import ChangeId, Cost, Quantity

_log = logging.getLogger(__name__)


class DepthFeedPublisher:
    """Turns order book trade and depth events into feed messages.

    The order book handed to the callbacks must carry a ``symbol`` attribute.
    A depth tracker must carry ``last_published_change`` and the ``bids`` and
    ``asks`` level sequences; each level provides ``price``, ``order_count``,
    ``aggregate_qty`` and ``changed_since(change_id)``.
    """

    def __init__(self, connection: Any = None, clock: Callable[[], float] = time.time) -> None:
        self._connection = connection
        self._clock = clock

    def set_connection(self, connection: Any) -> None:
        """Set the connection messages are published on."""
        self._connection = connection

    def _require_connection(self) -> Any:
        if self._connection is None:
            raise RuntimeError("publisher has no connection")
        return self._connection

    def on_trade(self, order_book: Any, qty: Quantity, cost: Cost) -> None:
        """Publish a trade in ``order_book``."""
        connection = self._require_connection()
        symbol = order_book.symbol
        _log.info("got trade for %s qty %d cost %d", symbol, qty, cost)
        connection.send_trade(self.build_trade_message(symbol, qty, cost))

    def on_depth_change(self, order_book: Any, tracker: Any) -> None:
        """Publish changed depth levels, or all levels to sessions new to the symbol."""
        connection = self._require_connection()
        symbol = order_book.symbol
        message = self.build_depth_message(symbol, tracker, False)
        if not connection.send_incr_update(symbol, message):
            full_message = self.build_depth_message(symbol, tracker, True)
            connection.send_full_update(symbol, full_message)

    def build_trade_message(self, symbol: str, qty: Quantity, cost: Cost) -> dict[str, Any]:
        """Build the fields of a trade message."""
        return {
            TIMESTAMP: self._time_stamp(),
            SYMBOL: symbol,
            QTY: int(qty),
            COST: int(cost),
        }

    def build_depth_message(
        self, symbol: str, tracker: Any, full_message: bool
    ) -> dict[str, Any]:
        """Build the fields of a depth message.

        Only levels changed since the last published change are included,
        unless ``full_message`` is true.
        """
        last_published = tracker.last_published_change
        bids = _build_levels(tracker.bids, last_published, full_message)
        asks = _build_levels(tracker.asks, last_published, full_message)
        _log.info(
            "encoding %s depth message for symbol %s with %d bids, %d asks",
            "full" if full_message else "incr",
            symbol,
            len(bids),
            len(asks),
        )
        return {
            TIMESTAMP: self._time_stamp(),
            SYMBOL: symbol,
            BIDS: bids,
            ASKS: asks,
        }

    def _time_stamp(self) -> int:
        return int(self._clock()) & 0xFFFFFFFF


def _build_levels(
    levels: Iterable[Any], last_published: ChangeId, full_message: bool
) -> list[dict[str, int]]:
    return [
        {
            LEVEL_NUM: index,
            ORDER_COUNT: int(level.order_count),
            PRICE: int(level.price),
            SIZE: int(level.aggregate_qty),
        }
        for index, level in enumerate(levels)
        if full_message or level.changed_since(last_published)
    ]