"""Global enums: must match DB CHECK constraints exactly."""

from enum import Enum


class TransactionType(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class PriceSource(str, Enum):
    """Where a quoted price came from."""
    FEED = "FEED"
    CACHE = "CACHE"
    FALLBACK = "FALLBACK"
