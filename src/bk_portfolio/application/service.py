"""PortfolioService: the buy/sell mutation core plus portfolio reads.

A trade moves through: validate -> lock -> read -> price -> compute -> commit.
The balance debit/credit, the holding change, the transaction log entry and
the recomputed aggregates are written in ONE unit of work (one AsyncSession);
any failure rolls all of them back.

Concurrency:
  - Trades for the same user are serialised by a per-user asyncio.Lock.
  - Balance and portfolio rows are written with a version compare-and-swap;
    a lost CAS (another process, or a deposit) rolls back and retries up to
    ``max_retries`` times, then raises ConcurrentModificationError.
  - The unit of work runs in its own task behind asyncio.shield, so a client
    disconnect cannot cancel it between the debit and the commit.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.bk_account.domain.repository import AccountRepositoryProtocol
from src.bk_account.infrastructure.persistence import AccountRepository
from src.bk_common.database import async_session_factory
from src.bk_common.datetime_utils import utc_now
from src.bk_common.enums import TransactionType
from src.bk_common.errors import (
    AccountNotFoundError,
    ConcurrentModificationError,
    HoldingNotFoundError,
    InsufficientBalanceError,
    InvalidInputError,
    PortfolioNotFoundError,
    StaleWriteError,
    StorageFailureError,
)
from src.bk_common.id_generator import new_transaction_id
from src.bk_portfolio.application.locks import PortfolioLockRegistry
from src.bk_portfolio.application.schemas import (
    BuyResponse,
    HoldingDetailsResponse,
    HoldingResponse,
    Pagination,
    PortfolioResponse,
    SellResponse,
    TransactionHistoryResponse,
    TransactionItem,
)
from src.bk_portfolio.application.valuation import PortfolioValuator
from src.bk_portfolio.domain.accounting import (
    aggregate_totals,
    apply_buy,
    apply_sell,
    value_holding,
)
from src.bk_portfolio.domain.models import Holding, Portfolio, TradeOrder, TradeResult, Transaction
from src.bk_portfolio.domain.repository import (
    PortfolioRepositoryProtocol,
    TransactionRepositoryProtocol,
)
from src.bk_portfolio.domain.validation import normalize_symbol, validate_trade_input
from src.bk_portfolio.infrastructure.persistence import PortfolioRepository
from src.bk_portfolio.infrastructure.transactions_repository import TransactionRepository
from src.bk_pricing.domain.protocols import PriceOracleProtocol

logger = logging.getLogger(__name__)

HOLDING_HISTORY_LIMIT = 50
MAX_PAGE_SIZE = 100

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


class PortfolioService:
    def __init__(
        self,
        oracle: PriceOracleProtocol,
        session_factory: SessionFactory = async_session_factory,
        accounts: AccountRepositoryProtocol | None = None,
        portfolios: PortfolioRepositoryProtocol | None = None,
        transactions: TransactionRepositoryProtocol | None = None,
        locks: PortfolioLockRegistry | None = None,
        max_retries: int = settings.MUTATION_MAX_RETRIES,
    ) -> None:
        self._oracle = oracle
        self._session_factory = session_factory
        self._accounts: AccountRepositoryProtocol = accounts or AccountRepository()
        self._portfolios: PortfolioRepositoryProtocol = portfolios or PortfolioRepository()
        self._transactions: TransactionRepositoryProtocol = (
            transactions or TransactionRepository()
        )
        self._locks = locks or PortfolioLockRegistry()
        self._max_retries = max_retries
        self._valuator = PortfolioValuator(oracle, self._portfolios)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def buy(self, user_id: str, symbol: Any, quantity: Any, price: Any) -> BuyResponse:
        order = validate_trade_input(symbol, quantity, price)
        result = await self._run_mutation(user_id, lambda db: self._buy(db, user_id, order))
        return BuyResponse.from_result(result)

    async def sell(self, user_id: str, symbol: Any, quantity: Any, price: Any) -> SellResponse:
        order = validate_trade_input(symbol, quantity, price)
        result = await self._run_mutation(user_id, lambda db: self._sell(db, user_id, order))
        return SellResponse.from_result(result)

    async def _buy(self, db: AsyncSession, user_id: str, order: TradeOrder) -> TradeResult:
        account = await self._accounts.get_account(db, user_id)
        if account is None:
            raise AccountNotFoundError(user_id)
        total_cost = order.total_amount
        if account.balance < total_cost:
            raise InsufficientBalanceError(required=total_cost, available=account.balance)

        portfolio = await self._portfolios.ensure_portfolio(db, user_id)
        market_price = await self._oracle.get_price(order.symbol)
        holding = value_holding(
            apply_buy(portfolio.find_holding(order.symbol), order.symbol, order.quantity, order.price),
            market_price,
        )

        account = await self._accounts.set_balance(
            db, user_id, account.balance - total_cost, account.version
        )
        await self._portfolios.upsert_holding(db, portfolio.id, holding)
        transaction = await self._transactions.append(
            db, _new_transaction(user_id, TransactionType.BUY, order)
        )
        await self._commit_totals(db, portfolio, portfolio.with_holding(holding))
        return TradeResult(transaction=transaction, new_balance=account.balance)

    async def _sell(self, db: AsyncSession, user_id: str, order: TradeOrder) -> TradeResult:
        portfolio = await self._portfolios.get_portfolio(db, user_id)
        if portfolio is None:
            raise PortfolioNotFoundError(user_id)
        holding = portfolio.find_holding(order.symbol)
        if holding is None:
            raise HoldingNotFoundError(order.symbol)
        remaining = apply_sell(holding, order.quantity)
        account = await self._accounts.get_account(db, user_id)
        if account is None:
            raise AccountNotFoundError(user_id)

        holdings: list[Holding]
        if remaining is None:
            await self._portfolios.delete_holding(db, portfolio.id, order.symbol)
            holdings = portfolio.without_holding(order.symbol)
        else:
            market_price = await self._oracle.get_price(order.symbol)
            remaining = value_holding(remaining, market_price)
            await self._portfolios.upsert_holding(db, portfolio.id, remaining)
            holdings = portfolio.with_holding(remaining)

        account = await self._accounts.set_balance(
            db, user_id, account.balance + order.total_amount, account.version
        )
        transaction = await self._transactions.append(
            db, _new_transaction(user_id, TransactionType.SELL, order)
        )
        await self._commit_totals(db, portfolio, holdings)
        return TradeResult(transaction=transaction, new_balance=account.balance)

    async def _commit_totals(
        self, db: AsyncSession, portfolio: Portfolio, holdings: list[Holding]
    ) -> None:
        await self._portfolios.commit_totals(
            db, portfolio.id, aggregate_totals(holdings), utc_now(), portfolio.version
        )

    async def _run_mutation(
        self,
        user_id: str,
        operation: Callable[[AsyncSession], Awaitable[TradeResult]],
    ) -> TradeResult:
        task = asyncio.ensure_future(self._mutate_serialized(user_id, operation))
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            task.add_done_callback(_report_detached_failure)
            raise

    async def _mutate_serialized(
        self,
        user_id: str,
        operation: Callable[[AsyncSession], Awaitable[TradeResult]],
    ) -> TradeResult:
        async with self._locks.lock_for(user_id):
            for attempt in range(1, self._max_retries + 1):
                try:
                    async with self._unit_of_work() as db:
                        result = await operation(db)
                        await db.commit()
                except StaleWriteError as exc:
                    logger.warning(
                        "Stale write on %s for %s (attempt %d/%d), retrying",
                        exc.table,
                        exc.key,
                        attempt,
                        self._max_retries,
                    )
                    continue
                tx = result.transaction
                logger.info(
                    "%s committed user=%s symbol=%s qty=%s price=%s amount=%s balance=%s tx=%s",
                    tx.type.value,
                    user_id,
                    tx.symbol,
                    tx.quantity,
                    tx.price,
                    tx.total_amount,
                    result.new_balance,
                    tx.id,
                )
                return result
        raise ConcurrentModificationError(user_id)

    @asynccontextmanager
    async def _unit_of_work(self) -> AsyncIterator[AsyncSession]:
        """One session, rolled back on any exception escaping the block."""
        async with self._session_factory() as db:
            try:
                yield db
            except SQLAlchemyError as exc:
                await db.rollback()
                logger.exception("Storage failure, unit of work rolled back")
                raise StorageFailureError() from exc
            except BaseException:
                await db.rollback()
                raise

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_portfolio(self, user_id: str) -> PortfolioResponse:
        """Revalue every holding at market and cache the refreshed snapshot."""
        async with self._unit_of_work() as db:
            portfolio = await self._portfolios.get_portfolio(db, user_id)
            if portfolio is None:
                return PortfolioResponse.empty()
            valued = await self._valuator.revalue(portfolio)
            if await self._valuator.persist(db, valued):
                await db.commit()
            else:
                await db.rollback()
        return PortfolioResponse.from_holdings(valued.holdings, valued.totals, valued.refreshed_at)

    async def get_holding_details(self, user_id: str, symbol: str) -> HoldingDetailsResponse:
        symbol = normalize_symbol(symbol)
        if not symbol:
            raise InvalidInputError(["Valid symbol is required"])
        async with self._unit_of_work() as db:
            portfolio = await self._portfolios.get_portfolio(db, user_id)
            if portfolio is None:
                raise PortfolioNotFoundError(user_id)
            holding = portfolio.find_holding(symbol)
            if holding is None:
                raise HoldingNotFoundError(symbol)
            market_price = await self._oracle.get_price(symbol)
            transactions = await self._transactions.list_for_user(
                db, user_id, None, symbol, 0, HOLDING_HISTORY_LIMIT
            )
        return HoldingDetailsResponse(
            holding=HoldingResponse.from_holding(value_holding(holding, market_price)),
            transactions=[TransactionItem.from_transaction(t) for t in transactions],
        )

    async def get_transaction_history(
        self,
        user_id: str,
        tx_type: str | None = None,
        symbol: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> TransactionHistoryResponse:
        errors: list[str] = []
        type_filter: str | None = None
        if tx_type:
            type_filter = tx_type.strip().upper()
            if type_filter not in TransactionType.__members__:
                errors.append("Type must be BUY or SELL")
        if page < 1:
            errors.append("Page must be at least 1")
        if not 1 <= limit <= MAX_PAGE_SIZE:
            errors.append(f"Limit must be between 1 and {MAX_PAGE_SIZE}")
        if errors:
            raise InvalidInputError(errors)
        symbol_filter = normalize_symbol(symbol) if symbol else None

        async with self._unit_of_work() as db:
            total = await self._transactions.count_for_user(
                db, user_id, type_filter, symbol_filter
            )
            transactions = await self._transactions.list_for_user(
                db, user_id, type_filter, symbol_filter, (page - 1) * limit, limit
            )
        return TransactionHistoryResponse(
            items=[TransactionItem.from_transaction(t) for t in transactions],
            pagination=Pagination.build(page, limit, total),
        )


def _new_transaction(user_id: str, tx_type: TransactionType, order: TradeOrder) -> Transaction:
    return Transaction(
        id=new_transaction_id(),
        user_id=user_id,
        type=tx_type,
        symbol=order.symbol,
        quantity=order.quantity,
        price=order.price,
        total_amount=order.total_amount,
        created_at=utc_now(),
    )


def _report_detached_failure(task: "asyncio.Future[TradeResult]") -> None:
    """Collect the outcome of a trade whose caller was cancelled."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.warning("Trade failed after its caller went away: %r", exc)
