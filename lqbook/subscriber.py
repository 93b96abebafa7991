"""Subscribes to the depth feed and keeps the depth of each symbol."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from .messages import (
    ASKS,
    BIDS,
    COST,
    LEVEL_NUM,
    MSG_TYPE,
    ORDER_COUNT,
    PRICE,
    QTY,
    SEQ_NUM,
    SIZE,
    SYMBOL,
    TIMESTAMP,
    MessageError,
    MessageType,
    decode_message,
)
from .types import ChangeId, Price, Quantity

_log = logging.getLogger(__name__)

DEPTH_LEVELS = 5
DEFAULT_PRECISION = 100

_HEADER = "----------BID----------    ----------ASK----------\n"
_BLANK_SIDE = " " * 23


@dataclass
class DepthLevel:
    """One aggregated price level of an order book side."""

    price: Price = 0
    aggregate_qty: Quantity = 0
    order_count: int = 0
    last_change: ChangeId = 0

    def set(self, price: Price, qty: Quantity, order_count: int) -> None:
        """Replace the level's price, quantity and order count."""
        self.price = price
        self.aggregate_qty = qty
        self.order_count = order_count

    def changed_since(self, change_id: ChangeId) -> bool:
        """Return True if the level changed after ``change_id``."""
        return self.last_change > change_id


def format_depth(
    bids: Sequence[DepthLevel], asks: Sequence[DepthLevel], precision: int
) -> str:
    """Render bid and ask levels side by side, stopping at the first empty level."""
    lines = [_HEADER]
    bid_iter = iter(bids)
    ask_iter = iter(asks)
    bid = next(bid_iter, None)
    ask = next(ask_iter, None)
    while bid is not None or ask is not None:
        if bid is not None and bid.order_count:
            lines.append(
                "%8.2f %9d [%2d]"
                % (bid.price / precision, bid.aggregate_qty, bid.order_count)
            )
            bid = next(bid_iter, None)
        else:
            lines.append(_BLANK_SIDE)
            bid = None
        if ask is not None and ask.order_count:
            lines.append(
                "    %8.2f %9d [%2d]\n"
                % (ask.price / precision, ask.aggregate_qty, ask.order_count)
            )
            ask = next(ask_iter, None)
        else:
            lines.append("\n")
            ask = None
    return "".join(lines)


def _uint(fields: Mapping[str, Any], name: str) -> int | None:
    value = fields.get(name)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        return None
    return value


class DepthFeedSubscriber:
    """Decodes feed messages, checks their sequence and tracks depth per symbol."""

    def __init__(self, precision: int = DEFAULT_PRECISION) -> None:
        self.precision = precision
        self._depths: dict[str, tuple[list[DepthLevel], list[DepthLevel]]] = {}
        self._expected_seq = 1

    @property
    def expected_seq(self) -> int:
        """The sequence number the next message must carry."""
        return self._expected_seq

    def handle_reset(self) -> None:
        """Start the sequence again after a reconnection."""
        self._expected_seq = 1

    def depth(self, symbol: str) -> tuple[tuple[DepthLevel, ...], tuple[DepthLevel, ...]]:
        """Return the bid and ask levels held for ``symbol``."""
        bids, asks = self._depths[symbol]
        return tuple(bids), tuple(asks)

    def handle_message(self, data: bytes) -> bool:
        """Handle one received frame; return False on any failure."""
        try:
            _, msg = decode_message(data)
        except MessageError as exc:
            _log.warning("could not decode message: %s", exc)
            return False

        seq_num = _uint(msg, SEQ_NUM)
        if seq_num is None:
            _log.warning("could not get seq num from msg")
            return False
        if seq_num != self._expected_seq:
            _log.error("got seq num %d, expected %d", seq_num, self._expected_seq)
            return False
        msg_type = _uint(msg, MSG_TYPE)
        if msg_type is None:
            _log.warning("could not get msg type from msg")
            return False
        symbol = msg.get(SYMBOL)
        if not isinstance(symbol, str):
            _log.warning("could not get symbol from msg")
            return False
        timestamp = _uint(msg, TIMESTAMP)
        if timestamp is None:
            _log.warning("could not get timestamp from msg")
            return False

        if msg_type == MessageType.DEPTH:
            result = self._handle_depth_message(symbol, seq_num, timestamp, msg)
        elif msg_type == MessageType.TRADE:
            result = self._handle_trade_message(symbol, seq_num, timestamp, msg)
        else:
            _log.error("unknown message type %d seq num %d", msg_type, seq_num)
            return False
        self._expected_seq += 1
        return result

    def _handle_depth_message(
        self, symbol: str, seq_num: int, timestamp: int, msg: Mapping[str, Any]
    ) -> bool:
        _log.info("%d got depth msg %d for symbol %s", timestamp, seq_num, symbol)
        bids, asks = self._depths.setdefault(
            symbol,
            (
                [DepthLevel() for _ in range(DEPTH_LEVELS)],
                [DepthLevel() for _ in range(DEPTH_LEVELS)],
            ),
        )
        if not (
            self._apply_levels(msg.get(BIDS), bids, "bid")
            and self._apply_levels(msg.get(ASKS), asks, "ask")
        ):
            return False
        _log.info("\n%s", format_depth(bids, asks, self.precision))
        return True

    @staticmethod
    def _apply_levels(entries: Any, levels: list[DepthLevel], side: str) -> bool:
        if not isinstance(entries, list):
            return True
        for i, entry in enumerate(entries):
            if not isinstance(entry, dict):
                _log.warning("failed to get %s %d", side, i)
                return False
            values = {}
            for name in (LEVEL_NUM, PRICE, ORDER_COUNT, SIZE):
                value = _uint(entry, name)
                if value is None:
                    _log.warning("could not get %s %s from depth msg", side, name)
                    return False
                values[name] = value
            level_num = values[LEVEL_NUM]
            if level_num >= len(levels):
                _log.warning("%s level %d out of range", side, level_num)
                return False
            levels[level_num].set(values[PRICE], values[SIZE], values[ORDER_COUNT])
        return True

    def _handle_trade_message(
        self, symbol: str, seq_num: int, timestamp: int, msg: Mapping[str, Any]
    ) -> bool:
        qty = _uint(msg, QTY)
        if qty is None:
            _log.warning("could not get qty from trade msg")
            return False
        cost = _uint(msg, COST)
        if cost is None:
            _log.warning("could not get cost from trade msg")
            return False
        divisor = qty * self.precision
        price = cost / divisor if divisor else math.nan
        _log.info(
            "%d got trade msg %d for symbol %s: %d@%s", timestamp, seq_num, symbol, qty, price
        )
        return True