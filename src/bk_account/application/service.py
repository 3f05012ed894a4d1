"""AccountApplicationService: cash balance reads, deposits and withdrawals.

Deposit and withdraw commit their own unit of work on the request session.
Every balance change bumps ``accounts.version`` so an in-flight buy/sell for
the same user loses its compare-and-swap and retries against the new balance.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.bk_account.application.schemas import BalanceChangeResponse, BalanceResponse
from src.bk_account.domain.repository import AccountRepositoryProtocol
from src.bk_account.infrastructure.persistence import AccountRepository
from src.bk_common.errors import AccountNotFoundError, StorageFailureError
from src.bk_common.money import to_money

logger = logging.getLogger(__name__)


class AccountApplicationService:
    def __init__(self, repo: AccountRepositoryProtocol | None = None) -> None:
        self._repo: AccountRepositoryProtocol = repo or AccountRepository()

    async def get_balance(self, db: AsyncSession, user_id: str) -> BalanceResponse:
        account = await self._repo.get_account(db, user_id)
        if account is None:
            raise AccountNotFoundError(user_id)
        return BalanceResponse.from_balance(user_id, account.balance)

    async def deposit(
        self, db: AsyncSession, user_id: str, amount: Decimal
    ) -> BalanceChangeResponse:
        amount = to_money(amount)
        async with _committing(db):
            await self._repo.get_or_create_account(db, user_id)
            account = await self._repo.deposit(db, user_id, amount)
        logger.info("Deposit user=%s amount=%s balance=%s", user_id, amount, account.balance)
        return BalanceChangeResponse.from_result(amount, account.balance)

    async def withdraw(
        self, db: AsyncSession, user_id: str, amount: Decimal
    ) -> BalanceChangeResponse:
        amount = to_money(amount)
        async with _committing(db):
            account = await self._repo.withdraw(db, user_id, amount)
        logger.info("Withdraw user=%s amount=%s balance=%s", user_id, amount, account.balance)
        return BalanceChangeResponse.from_result(amount, account.balance)


@asynccontextmanager
async def _committing(db: AsyncSession) -> AsyncIterator[None]:
    """Commit on success; roll back on failure, hiding storage errors."""
    try:
        yield
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("Storage failure, balance change rolled back")
        raise StorageFailureError() from exc
    except BaseException:
        await db.rollback()
        raise
