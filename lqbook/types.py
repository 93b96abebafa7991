"""Basic types and constants shared across the order book."""

from __future__ import annotations

import enum
from dataclasses import dataclass

Price = int
Quantity = int
Cost = int
FillId = int
ChangeId = int
OrderConditions = int

MARKET_ORDER_PRICE: Price = 0
PRICE_UNCHANGED: Price = 0
QUANTITY_MAX: Quantity = 2**64 - 1
SIZE_UNCHANGED: int = 0


class OrderCondition(enum.IntFlag):
    """Conditions that may be attached to an order."""

    NO_CONDITIONS = 0
    ALL_OR_NONE = 1
    IMMEDIATE_OR_CANCEL = ALL_OR_NONE << 1
    FILL_OR_KILL = ALL_OR_NONE | IMMEDIATE_OR_CANCEL
    STOP = IMMEDIATE_OR_CANCEL << 1


@dataclass(frozen=True)
class Version:
    """Library version information."""

    major: int = 2
    minor: int = 0
    patch: int = 0
    release_date: int = 20170222

    def as_string(self) -> str:
        """Return the version as ``major.minor.patch``."""
        return f"{self.major}.{self.minor}.{self.patch}"

    def __str__(self) -> str:
        return self.as_string()