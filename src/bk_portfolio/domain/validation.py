"""Trade input validation.

Runs before any lock is taken or any row is read. All violations are
collected so the caller can fix every field in one round trip.
"""

from decimal import Decimal, InvalidOperation
from typing import Any

from src.bk_common.errors import InvalidInputError
from src.bk_portfolio.domain.models import TradeOrder

MAX_SYMBOL_LENGTH = 16
MAX_QUANTITY_PLACES = 6
MAX_PRICE_PLACES = 4
MIN_TRADE_VALUE = Decimal("0.01")


def _positive_decimal(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    if not isinstance(value, (int, float, str, Decimal)):
        return None
    try:
        number = Decimal(str(value))
    except InvalidOperation:
        return None
    if not number.is_finite() or number <= 0:
        return None
    return number


def _places(value: Decimal) -> int:
    exponent = value.normalize().as_tuple().exponent
    return -exponent if isinstance(exponent, int) and exponent < 0 else 0


def normalize_symbol(symbol: str) -> str:
    return symbol.strip().upper()


def validate_trade_input(symbol: Any, quantity: Any, price: Any) -> TradeOrder:
    """Validate a buy/sell request and return it normalised.

    Raises:
        InvalidInputError: listing every violated field.
    """
    errors: list[str] = []

    if not isinstance(symbol, str) or not symbol.strip():
        errors.append("Valid symbol is required")
    elif len(symbol.strip()) > MAX_SYMBOL_LENGTH:
        errors.append(f"Symbol must be at most {MAX_SYMBOL_LENGTH} characters")

    qty = _positive_decimal(quantity)
    if qty is None:
        errors.append("Valid positive quantity is required")
    elif _places(qty) > MAX_QUANTITY_PLACES:
        errors.append(f"Quantity supports at most {MAX_QUANTITY_PLACES} decimal places")

    px = _positive_decimal(price)
    if px is None:
        errors.append("Valid positive price is required")
    elif _places(px) > MAX_PRICE_PLACES:
        errors.append(f"Price supports at most {MAX_PRICE_PLACES} decimal places")

    order: TradeOrder | None = None
    if isinstance(symbol, str) and qty is not None and px is not None:
        order = TradeOrder(symbol=normalize_symbol(symbol), quantity=qty, price=px)
        if order.total_amount < MIN_TRADE_VALUE:
            errors.append(f"Trade value must be at least {MIN_TRADE_VALUE}")

    if errors or order is None:
        raise InvalidInputError(errors)
    return order
