"""AccountRepository: concrete implementation of AccountRepositoryProtocol.

Deposit and withdraw are single atomic UPDATE ... RETURNING statements; a
result of 0 rows on withdraw means the balance guard rejected it.
set_balance is a compare-and-swap on ``version`` used by the portfolio
mutation core, which computes the new balance itself.

Transaction ownership: the CALLER opens and commits the unit of work.
"""

from decimal import Decimal

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.bk_account.domain.models import Account
from src.bk_common.errors import AccountNotFoundError, InsufficientBalanceError, StaleWriteError

_COLUMNS = "id, user_id, balance, version, created_at, updated_at"

_GET_ACCOUNT_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM accounts
    WHERE user_id = :user_id
""")

_GET_OR_CREATE_ACCOUNT_SQL = text(f"""
    INSERT INTO accounts (user_id)
    VALUES (:user_id)
    ON CONFLICT (user_id) DO UPDATE
        SET updated_at = accounts.updated_at
    RETURNING {_COLUMNS}
""")

_SET_BALANCE_SQL = text(f"""
    UPDATE accounts
    SET balance = :balance,
        version = version + 1,
        updated_at = NOW()
    WHERE user_id = :user_id AND version = :expected_version
    RETURNING {_COLUMNS}
""")

_DEPOSIT_SQL = text(f"""
    UPDATE accounts
    SET balance = balance + :amount,
        version = version + 1,
        updated_at = NOW()
    WHERE user_id = :user_id
    RETURNING {_COLUMNS}
""")

_WITHDRAW_SQL = text(f"""
    UPDATE accounts
    SET balance = balance - :amount,
        version = version + 1,
        updated_at = NOW()
    WHERE user_id = :user_id AND balance >= :amount
    RETURNING {_COLUMNS}
""")


def _row_to_account(row: object) -> Account:
    return Account(
        id=str(row.id),  # type: ignore[attr-defined]
        user_id=row.user_id,  # type: ignore[attr-defined]
        balance=row.balance,  # type: ignore[attr-defined]
        version=row.version,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


class AccountRepository:
    """Concrete repository: every write is atomic at the SQL level."""

    async def get_account(self, db: AsyncSession, user_id: str) -> Account | None:
        result = await db.execute(_GET_ACCOUNT_SQL, {"user_id": user_id})
        row = result.fetchone()
        return _row_to_account(row) if row else None

    async def get_or_create_account(self, db: AsyncSession, user_id: str) -> Account:
        result = await db.execute(_GET_OR_CREATE_ACCOUNT_SQL, {"user_id": user_id})
        return _row_to_account(result.fetchone())

    async def set_balance(
        self, db: AsyncSession, user_id: str, new_balance: Decimal, expected_version: int
    ) -> Account:
        result = await db.execute(
            _SET_BALANCE_SQL,
            {
                "user_id": user_id,
                "balance": new_balance,
                "expected_version": expected_version,
            },
        )
        row = result.fetchone()
        if row is None:
            raise StaleWriteError("accounts", user_id)
        return _row_to_account(row)

    async def deposit(self, db: AsyncSession, user_id: str, amount: Decimal) -> Account:
        result = await db.execute(_DEPOSIT_SQL, {"user_id": user_id, "amount": amount})
        row = result.fetchone()
        if row is None:
            raise AccountNotFoundError(user_id)
        return _row_to_account(row)

    async def withdraw(self, db: AsyncSession, user_id: str, amount: Decimal) -> Account:
        result = await db.execute(_WITHDRAW_SQL, {"user_id": user_id, "amount": amount})
        row = result.fetchone()
        if row is None:
            account = await self.get_account(db, user_id)
            if account is None:
                raise AccountNotFoundError(user_id)
            raise InsufficientBalanceError(required=amount, available=account.balance)
        return _row_to_account(row)
