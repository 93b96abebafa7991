"""Callback interfaces for logging and order book events."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from .types import Price, Quantity


class Logger(ABC):
    """Lets an application control error logging."""

    @abstractmethod
    def log_exception(self, context: str, ex: BaseException) -> None:
        """Record an exception raised in the given context."""

    @abstractmethod
    def log_message(self, message: str) -> None:
        """Record a message."""


class OrderListener(ABC):
    """Listener of order events, suited to building a full order feed."""

    @abstractmethod
    def on_accept(self, order: Any) -> None:
        """Called when an order is accepted."""

    def on_trigger_stop(self, order: Any) -> None:
        """Called when a stop order is triggered; ignored by default."""

    @abstractmethod
    def on_reject(self, order: Any, reason: str) -> None:
        """Called when an order is rejected."""

    @abstractmethod
    def on_fill(
        self,
        order: Any,
        matched_order: Any,
        fill_qty: Quantity,
        fill_price: Price,
    ) -> None:
        """Called for each fill of the inbound order against a matched order."""

    @abstractmethod
    def on_cancel(self, order: Any) -> None:
        """Called when an order is cancelled."""

    @abstractmethod
    def on_cancel_reject(self, order: Any, reason: str) -> None:
        """Called when a cancel request is rejected."""

    @abstractmethod
    def on_replace(self, order: Any, size_delta: int, new_price: Price) -> None:
        """Called when an order is replaced."""

    @abstractmethod
    def on_replace_reject(self, order: Any, reason: str) -> None:
        """Called when a replace request is rejected."""


class TradeListener(ABC):
    """Listener of trade events, suited to building a trade feed."""

    @abstractmethod
    def on_trade(self, book: Any, qty: Quantity, price: Price) -> None:
        """Called for a trade in the given book."""


class OrderBookListener(ABC):
    """Listener of any change in an order book."""

    @abstractmethod
    def on_order_book_change(self, book: Any) -> None:
        """Called after the book has changed."""