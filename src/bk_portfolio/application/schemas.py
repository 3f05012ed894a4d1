"""Pydantic schemas for bk_portfolio API.

Trade request fields accept any JSON value; validate_trade_input reports
every bad field at once with code 4001.
"""

import math
from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel

from src.bk_common.datetime_utils import to_iso
from src.bk_common.enums import TransactionType
from src.bk_common.money import ZERO
from src.bk_portfolio.domain.models import Holding, PortfolioTotals, TradeResult, Transaction

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class TradeRequest(BaseModel):
    symbol: Any = None
    quantity: Any = None
    price: Any = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class BuyResponse(BaseModel):
    transaction_id: str
    type: TransactionType = TransactionType.BUY
    symbol: str
    quantity: Decimal
    price: Decimal
    total_cost: Decimal
    new_balance: Decimal

    @classmethod
    def from_result(cls, result: TradeResult) -> "BuyResponse":
        tx = result.transaction
        return cls(
            transaction_id=tx.id,
            symbol=tx.symbol,
            quantity=tx.quantity,
            price=tx.price,
            total_cost=tx.total_amount,
            new_balance=result.new_balance,
        )


class SellResponse(BaseModel):
    transaction_id: str
    type: TransactionType = TransactionType.SELL
    symbol: str
    quantity: Decimal
    price: Decimal
    sale_value: Decimal
    new_balance: Decimal

    @classmethod
    def from_result(cls, result: TradeResult) -> "SellResponse":
        tx = result.transaction
        return cls(
            transaction_id=tx.id,
            symbol=tx.symbol,
            quantity=tx.quantity,
            price=tx.price,
            sale_value=tx.total_amount,
            new_balance=result.new_balance,
        )


class HoldingResponse(BaseModel):
    symbol: str
    quantity: Decimal
    average_buy_price: Decimal
    total_invested: Decimal
    current_price: Decimal | None
    current_value: Decimal
    profit_loss: Decimal
    profit_loss_percentage: Decimal

    @classmethod
    def from_holding(cls, holding: Holding) -> "HoldingResponse":
        return cls(
            symbol=holding.symbol,
            quantity=holding.quantity,
            average_buy_price=holding.average_buy_price,
            total_invested=holding.total_invested,
            current_price=holding.current_price,
            current_value=holding.current_value,
            profit_loss=holding.profit_loss,
            profit_loss_percentage=holding.profit_loss_percentage,
        )


class PortfolioResponse(BaseModel):
    holdings: list[HoldingResponse]
    total_value: Decimal
    total_invested: Decimal
    total_profit_loss: Decimal
    profit_loss_percentage: Decimal
    last_updated: str | None

    @classmethod
    def from_holdings(
        cls, holdings: list[Holding], totals: PortfolioTotals, last_updated: datetime | None
    ) -> "PortfolioResponse":
        return cls(
            holdings=[HoldingResponse.from_holding(h) for h in holdings],
            total_value=totals.total_value,
            total_invested=totals.total_invested,
            total_profit_loss=totals.total_profit_loss,
            profit_loss_percentage=totals.profit_loss_percentage,
            last_updated=to_iso(last_updated),
        )

    @classmethod
    def empty(cls) -> "PortfolioResponse":
        return cls(
            holdings=[],
            total_value=ZERO,
            total_invested=ZERO,
            total_profit_loss=ZERO,
            profit_loss_percentage=ZERO,
            last_updated=None,
        )


class TransactionItem(BaseModel):
    id: str
    type: TransactionType
    symbol: str
    quantity: Decimal
    price: Decimal
    total_amount: Decimal
    timestamp: str

    @classmethod
    def from_transaction(cls, tx: Transaction) -> "TransactionItem":
        return cls(
            id=tx.id,
            type=tx.type,
            symbol=tx.symbol,
            quantity=tx.quantity,
            price=tx.price,
            total_amount=tx.total_amount,
            timestamp=to_iso(tx.created_at) or "",
        )


class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total_transactions: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(
            current_page=page,
            total_pages=math.ceil(total / limit),
            total_transactions=total,
            has_next=page * limit < total,
            has_prev=page > 1,
        )


class TransactionHistoryResponse(BaseModel):
    items: list[TransactionItem]
    pagination: Pagination


class HoldingDetailsResponse(BaseModel):
    holding: HoldingResponse
    transactions: list[TransactionItem]

