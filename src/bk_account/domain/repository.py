"""Repository Protocol: dependency inversion for testability.

Unit tests inject an in-memory fake that conforms to this Protocol.
Infrastructure layer provides the real implementation.
"""

from decimal import Decimal
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.bk_account.domain.models import Account


class AccountRepositoryProtocol(Protocol):
    async def get_account(self, db: AsyncSession, user_id: str) -> Account | None: ...

    async def get_or_create_account(self, db: AsyncSession, user_id: str) -> Account: ...

    async def set_balance(
        self, db: AsyncSession, user_id: str, new_balance: Decimal, expected_version: int
    ) -> Account: ...

    async def deposit(self, db: AsyncSession, user_id: str, amount: Decimal) -> Account: ...

    async def withdraw(self, db: AsyncSession, user_id: str, amount: Decimal) -> Account: ...
