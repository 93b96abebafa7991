"""The interface an order must provide to be held in an order book."""

from __future__ import annotations

from abc import ABC, abstractmethod

from .types import Price, Quantity


class Order(ABC):
    """Abstract order used by an order book."""

    def is_limit(self) -> bool:
        """Return True when the order carries a limit price."""
        return self.price() > 0

    @abstractmethod
    def is_buy(self) -> bool:
        """Return True for a buy order."""

    @abstractmethod
    def price(self) -> Price:
        """Return the limit price, or 0 for a market order."""

    def stop_price(self) -> Price:
        """Return the stop price, or 0 when the order is not a stop order."""
        return 0

    @abstractmethod
    def order_qty(self) -> Quantity:
        """Return the quantity of the order."""

    def all_or_none(self) -> bool:
        """Return True if the order may only trade in full."""
        return False

    def immediate_or_cancel(self) -> bool:
        """Return True if any quantity left after matching is cancelled."""
        return False