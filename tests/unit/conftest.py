"""In-memory stand-ins for the repositories, the session and the price oracle.

FakeStore holds committed state. Every fake repository write registers an
undo step on the FakeSession that made it; rollback (or closing the session
without committing) replays those steps in reverse, which is how a real
PostgreSQL transaction discards uncommitted work.
"""

import asyncio
import copy
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Any

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from src.bk_account.domain.models import Account
from src.bk_common.errors import AccountNotFoundError, StaleWriteError
from src.bk_portfolio.application.service import PortfolioService
from src.bk_portfolio.domain.models import Holding, Portfolio, PortfolioTotals, Transaction


def _db_down(statement: str) -> OperationalError:
    return OperationalError(statement, None, Exception("connection reset by peer"))


class FakeStore:
    def __init__(self) -> None:
        self.accounts: dict[str, Account] = {}
        self.portfolios: dict[str, Portfolio] = {}
        self.transactions: list[Transaction] = []
        self.sessions_opened = 0
        self.commits = 0
        self.rollbacks = 0
        # Fault injection
        self.stale_account_writes = 0
        self.fail_transaction_append = False
        self.fail_commit = False

    def session(self) -> "FakeSession":
        self.sessions_opened += 1
        return FakeSession(self)

    def seed_account(self, user_id: str, balance: str) -> None:
        self.accounts[user_id] = Account(
            id=f"acct-{user_id}", user_id=user_id, balance=Decimal(balance), version=0
        )

    def balance(self, user_id: str) -> Decimal:
        return self.accounts[user_id].balance

    def holding(self, user_id: str, symbol: str) -> Holding | None:
        portfolio = self.portfolios.get(user_id)
        return portfolio.find_holding(symbol) if portfolio else None


class FakeSession:
    def __init__(self, store: FakeStore) -> None:
        self._store = store
        self._undo: list[Callable[[], None]] = []

    def record(self, undo: Callable[[], None]) -> None:
        self._undo.append(undo)

    def _discard(self) -> None:
        while self._undo:
            self._undo.pop()()

    async def commit(self) -> None:
        if self._store.fail_commit:
            raise _db_down("COMMIT")
        self._undo.clear()
        self._store.commits += 1

    async def rollback(self) -> None:
        self._discard()
        self._store.rollbacks += 1

    async def __aenter__(self) -> "FakeSession":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self._discard()


class FakeAccountRepository:
    def __init__(self, store: FakeStore) -> None:
        self._store = store

    async def get_account(self, db: FakeSession, user_id: str) -> Account | None:
        return self._store.accounts.get(user_id)

    async def get_or_create_account(self, db: FakeSession, user_id: str) -> Account:
        if user_id not in self._store.accounts:
            self._store.seed_account(user_id, "0.00")
            db.record(lambda: self._store.accounts.pop(user_id, None))
        return self._store.accounts[user_id]

    async def set_balance(
        self, db: FakeSession, user_id: str, new_balance: Decimal, expected_version: int
    ) -> Account:
        current = self._store.accounts.get(user_id)
        if self._store.stale_account_writes > 0:
            self._store.stale_account_writes -= 1
            raise StaleWriteError("accounts", user_id)
        if current is None or current.version != expected_version:
            raise StaleWriteError("accounts", user_id)
        if new_balance < 0:
            raise IntegrityError("UPDATE accounts", None, Exception("ck_accounts_balance_gte_0"))
        updated = replace(current, balance=new_balance, version=current.version + 1)
        self._store.accounts[user_id] = updated
        db.record(lambda: self._store.accounts.__setitem__(user_id, current))
        return updated

    async def deposit(self, db: FakeSession, user_id: str, amount: Decimal) -> Account:
        current = self._store.accounts.get(user_id)
        if current is None:
            raise AccountNotFoundError(user_id)
        return await self.set_balance(db, user_id, current.balance + amount, current.version)

    async def withdraw(self, db: FakeSession, user_id: str, amount: Decimal) -> Account:
        current = self._store.accounts.get(user_id)
        if current is None:
            raise AccountNotFoundError(user_id)
        return await self.set_balance(db, user_id, current.balance - amount, current.version)


class FakePortfolioRepository:
    def __init__(self, store: FakeStore) -> None:
        self._store = store

    def _by_id(self, portfolio_id: str) -> Portfolio:
        for portfolio in self._store.portfolios.values():
            if portfolio.id == portfolio_id:
                return portfolio
        raise KeyError(portfolio_id)

    def _checkpoint(self, db: FakeSession, portfolio: Portfolio) -> None:
        saved = copy.deepcopy(portfolio)
        db.record(lambda: self._store.portfolios.__setitem__(saved.user_id, saved))

    async def get_portfolio(self, db: FakeSession, user_id: str) -> Portfolio | None:
        portfolio = self._store.portfolios.get(user_id)
        return copy.deepcopy(portfolio) if portfolio else None

    async def ensure_portfolio(self, db: FakeSession, user_id: str) -> Portfolio:
        if user_id not in self._store.portfolios:
            self._store.portfolios[user_id] = Portfolio(id=f"pf-{user_id}", user_id=user_id)
            db.record(lambda: self._store.portfolios.pop(user_id, None))
        return copy.deepcopy(self._store.portfolios[user_id])

    async def upsert_holding(self, db: FakeSession, portfolio_id: str, holding: Holding) -> None:
        portfolio = self._by_id(portfolio_id)
        self._checkpoint(db, portfolio)
        portfolio.holdings = portfolio.with_holding(copy.deepcopy(holding))

    async def delete_holding(self, db: FakeSession, portfolio_id: str, symbol: str) -> None:
        portfolio = self._by_id(portfolio_id)
        self._checkpoint(db, portfolio)
        portfolio.holdings = portfolio.without_holding(symbol)

    async def commit_totals(
        self,
        db: FakeSession,
        portfolio_id: str,
        totals: PortfolioTotals,
        last_updated: datetime,
        expected_version: int,
    ) -> int:
        portfolio = self._by_id(portfolio_id)
        if portfolio.version != expected_version:
            raise StaleWriteError("portfolios", portfolio_id)
        self._checkpoint(db, portfolio)
        portfolio.totals = totals
        portfolio.last_updated = last_updated
        portfolio.version += 1
        return portfolio.version

    async def store_snapshot(
        self,
        db: FakeSession,
        portfolio_id: str,
        holdings: list[Holding],
        totals: PortfolioTotals,
        last_updated: datetime,
        expected_version: int,
    ) -> bool:
        portfolio = self._by_id(portfolio_id)
        if portfolio.version != expected_version:
            return False
        self._checkpoint(db, portfolio)
        portfolio.totals = totals
        portfolio.last_updated = last_updated
        portfolio.holdings = copy.deepcopy(holdings)
        return True


class FakeTransactionRepository:
    def __init__(self, store: FakeStore) -> None:
        self._store = store

    async def append(self, db: FakeSession, transaction: Transaction) -> Transaction:
        if self._store.fail_transaction_append:
            raise _db_down("INSERT INTO transactions")
        self._store.transactions.append(transaction)
        db.record(lambda: self._store.transactions.remove(transaction))
        return transaction

    def _matching(self, user_id: str, tx_type: str | None, symbol: str | None) -> list[Transaction]:
        return [
            t
            for t in self._store.transactions
            if t.user_id == user_id
            and (tx_type is None or t.type.value == tx_type)
            and (symbol is None or t.symbol == symbol)
        ]

    async def list_for_user(
        self,
        db: FakeSession,
        user_id: str,
        tx_type: str | None,
        symbol: str | None,
        offset: int,
        limit: int,
    ) -> list[Transaction]:
        rows = sorted(
            self._matching(user_id, tx_type, symbol),
            key=lambda t: (t.created_at, int(t.id)),
            reverse=True,
        )
        return rows[offset : offset + limit]

    async def count_for_user(
        self, db: FakeSession, user_id: str, tx_type: str | None, symbol: str | None
    ) -> int:
        return len(self._matching(user_id, tx_type, symbol))


class FakeOracle:
    """Deterministic prices; optionally blocks inside get_price until released."""

    def __init__(self, prices: dict[str, str] | None = None, default: str = "100") -> None:
        self.prices = {k: Decimal(v) for k, v in (prices or {}).items()}
        self.default = Decimal(default)
        self.calls: list[str] = []
        self.gate: asyncio.Event | None = None
        self.waiting = False

    def set_price(self, symbol: str, price: str) -> None:
        self.prices[symbol] = Decimal(price)

    async def get_price(self, symbol: str) -> Decimal:
        self.calls.append(symbol)
        if self.gate is not None:
            self.waiting = True
            await self.gate.wait()
        else:
            await asyncio.sleep(0)
        return self.prices.get(symbol, self.default)

    async def get_prices(self, symbols: list[str]) -> dict[str, Decimal]:
        return {s: await self.get_price(s) for s in dict.fromkeys(symbols)}


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def oracle() -> FakeOracle:
    return FakeOracle({"AAPL": "150.00", "MSFT": "300.00"})


@pytest.fixture
def make_service(store: FakeStore, oracle: FakeOracle) -> Callable[..., PortfolioService]:
    def _make(**kwargs: Any) -> PortfolioService:
        return PortfolioService(
            oracle=oracle,
            session_factory=store.session,
            accounts=FakeAccountRepository(store),
            portfolios=FakePortfolioRepository(store),
            transactions=FakeTransactionRepository(store),
            **kwargs,
        )

    return _make


@pytest.fixture
def service(make_service: Callable[..., PortfolioService]) -> PortfolioService:
    return make_service()
