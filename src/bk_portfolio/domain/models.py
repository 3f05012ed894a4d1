"""Domain models for bk_portfolio: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from src.bk_common.enums import TransactionType
from src.bk_common.money import ZERO, to_money


@dataclass
class Holding:
    symbol: str
    quantity: Decimal               # > 0 while the holding exists
    average_buy_price: Decimal      # weighted cost per unit, 2 dp
    total_invested: Decimal         # remaining cost basis, 2 dp
    # Cached projection, recomputed from a market price on every read/write
    current_price: Decimal | None = None
    current_value: Decimal = ZERO
    profit_loss: Decimal = ZERO
    profit_loss_percentage: Decimal = ZERO


@dataclass(frozen=True)
class PortfolioTotals:
    total_invested: Decimal = ZERO
    total_value: Decimal = ZERO
    total_profit_loss: Decimal = ZERO
    profit_loss_percentage: Decimal = ZERO


@dataclass
class Portfolio:
    id: str
    user_id: str
    holdings: list[Holding] = field(default_factory=list)
    totals: PortfolioTotals = field(default_factory=PortfolioTotals)
    last_updated: datetime | None = None
    version: int = 0                # CAS token, bumped by every buy/sell

    def find_holding(self, symbol: str) -> Holding | None:
        for holding in self.holdings:
            if holding.symbol == symbol:
                return holding
        return None

    def with_holding(self, holding: Holding) -> list[Holding]:
        """Holdings with ``holding`` replacing its symbol's slot, or appended."""
        replaced = False
        result: list[Holding] = []
        for existing in self.holdings:
            if existing.symbol == holding.symbol:
                result.append(holding)
                replaced = True
            else:
                result.append(existing)
        if not replaced:
            result.append(holding)
        return result

    def without_holding(self, symbol: str) -> list[Holding]:
        return [h for h in self.holdings if h.symbol != symbol]


@dataclass(frozen=True)
class TradeOrder:
    """A validated buy/sell request."""

    symbol: str
    quantity: Decimal
    price: Decimal

    @property
    def total_amount(self) -> Decimal:
        return to_money(self.quantity * self.price)


@dataclass(frozen=True)
class Transaction:
    """Append-only trade record. Never updated or deleted."""

    id: str
    user_id: str
    type: TransactionType
    symbol: str
    quantity: Decimal
    price: Decimal
    total_amount: Decimal
    created_at: datetime


@dataclass(frozen=True)
class TradeResult:
    transaction: Transaction
    new_balance: Decimal
