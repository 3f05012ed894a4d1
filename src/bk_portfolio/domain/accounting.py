"""Ledger accounting: pure functions over holdings, no I/O.

Average-cost method: buys merge into a weighted average; sells reduce the
cost basis proportionally and leave the average price untouched. Realized
P/L is not booked; sale proceeds go straight to the cash balance.
Money values are rounded to 2 dp (half away from zero) when produced.
"""

from collections.abc import Iterable
from dataclasses import replace
from decimal import Decimal

from src.bk_common.errors import InsufficientQuantityError
from src.bk_common.money import ZERO, percentage, to_money
from src.bk_portfolio.domain.models import Holding, PortfolioTotals


def apply_buy(holding: Holding | None, symbol: str, quantity: Decimal, price: Decimal) -> Holding:
    """Merge a buy into an existing holding, or open a new one."""
    cost = quantity * price
    if holding is None:
        return Holding(
            symbol=symbol,
            quantity=quantity,
            average_buy_price=to_money(price),
            total_invested=to_money(cost),
        )

    new_quantity = holding.quantity + quantity
    new_total_invested = to_money(holding.total_invested + cost)
    return replace(
        holding,
        quantity=new_quantity,
        average_buy_price=to_money(new_total_invested / new_quantity),
        total_invested=new_total_invested,
    )


def apply_sell(holding: Holding, quantity: Decimal) -> Holding | None:
    """Reduce a holding by ``quantity``; None means it is fully closed.

    Raises:
        InsufficientQuantityError: quantity exceeds what is held.
    """
    if quantity > holding.quantity:
        raise InsufficientQuantityError(holding.symbol, holding.quantity, quantity)

    remaining = holding.quantity - quantity
    if remaining == 0:
        return None

    remaining_invested = (holding.total_invested / holding.quantity) * remaining
    return replace(
        holding,
        quantity=remaining,
        total_invested=to_money(remaining_invested),
    )


def value_holding(holding: Holding, market_price: Decimal) -> Holding:
    """Recompute a holding's cached projection at ``market_price``."""
    current_value = to_money(market_price * holding.quantity)
    profit_loss = current_value - holding.total_invested
    return replace(
        holding,
        current_price=to_money(market_price),
        current_value=current_value,
        profit_loss=profit_loss,
        profit_loss_percentage=percentage(profit_loss, holding.total_invested),
    )


def aggregate_totals(holdings: Iterable[Holding]) -> PortfolioTotals:
    total_invested = ZERO
    total_value = ZERO
    for holding in holdings:
        total_invested += holding.total_invested
        total_value += holding.current_value

    total_invested = to_money(total_invested)
    total_value = to_money(total_value)
    total_profit_loss = total_value - total_invested
    return PortfolioTotals(
        total_invested=total_invested,
        total_value=total_value,
        total_profit_loss=total_profit_loss,
        profit_loss_percentage=percentage(total_profit_loss, total_invested),
    )
