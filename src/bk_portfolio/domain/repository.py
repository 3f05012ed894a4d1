"""Repository Protocols: dependency inversion for testability.

Unit tests inject in-memory fakes that conform to these Protocols.
Infrastructure layer provides the real implementations.
"""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.bk_portfolio.domain.models import Holding, Portfolio, PortfolioTotals, Transaction


class PortfolioRepositoryProtocol(Protocol):
    async def get_portfolio(self, db: AsyncSession, user_id: str) -> Portfolio | None: ...

    async def ensure_portfolio(self, db: AsyncSession, user_id: str) -> Portfolio: ...

    async def upsert_holding(
        self, db: AsyncSession, portfolio_id: str, holding: Holding
    ) -> None: ...

    async def delete_holding(self, db: AsyncSession, portfolio_id: str, symbol: str) -> None: ...

    async def commit_totals(
        self,
        db: AsyncSession,
        portfolio_id: str,
        totals: PortfolioTotals,
        last_updated: datetime,
        expected_version: int,
    ) -> int: ...

    async def store_snapshot(
        self,
        db: AsyncSession,
        portfolio_id: str,
        holdings: list[Holding],
        totals: PortfolioTotals,
        last_updated: datetime,
        expected_version: int,
    ) -> bool: ...


class TransactionRepositoryProtocol(Protocol):
    async def append(self, db: AsyncSession, transaction: Transaction) -> Transaction: ...

    async def list_for_user(
        self,
        db: AsyncSession,
        user_id: str,
        tx_type: str | None,
        symbol: str | None,
        offset: int,
        limit: int,
    ) -> list[Transaction]: ...

    async def count_for_user(
        self, db: AsyncSession, user_id: str, tx_type: str | None, symbol: str | None
    ) -> int: ...
