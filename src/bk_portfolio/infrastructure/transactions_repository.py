"""TransactionRepository: the append-only trade log.

Rows are only ever INSERTed; the table carries a trigger rejecting UPDATE
and DELETE.
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.bk_common.enums import TransactionType
from src.bk_portfolio.domain.models import Transaction

_COLUMNS = "id, user_id, type, symbol, quantity, price, total_amount, created_at"

_INSERT_SQL = text(f"""
    INSERT INTO transactions
        (id, user_id, type, symbol, quantity, price, total_amount, created_at)
    VALUES
        (:id, :user_id, :type, :symbol, :quantity, :price, :total_amount, :created_at)
    RETURNING {_COLUMNS}
""")

_FILTER = """
    WHERE user_id = :user_id
      AND (CAST(:tx_type AS VARCHAR) IS NULL OR type = :tx_type)
      AND (CAST(:symbol AS VARCHAR) IS NULL OR symbol = :symbol)
"""

_LIST_SQL = text(f"""
    SELECT {_COLUMNS}
    FROM transactions
    {_FILTER}
    ORDER BY created_at DESC, id DESC
    OFFSET :offset
    LIMIT :limit
""")

_COUNT_SQL = text(f"""
    SELECT COUNT(*)
    FROM transactions
    {_FILTER}
""")


def _row_to_transaction(row: object) -> Transaction:
    return Transaction(
        id=row.id,  # type: ignore[attr-defined]
        user_id=row.user_id,  # type: ignore[attr-defined]
        type=TransactionType(row.type),  # type: ignore[attr-defined]
        symbol=row.symbol,  # type: ignore[attr-defined]
        quantity=row.quantity,  # type: ignore[attr-defined]
        price=row.price,  # type: ignore[attr-defined]
        total_amount=row.total_amount,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


class TransactionRepository:
    async def append(self, db: AsyncSession, transaction: Transaction) -> Transaction:
        result = await db.execute(
            _INSERT_SQL,
            {
                "id": transaction.id,
                "user_id": transaction.user_id,
                "type": transaction.type.value,
                "symbol": transaction.symbol,
                "quantity": transaction.quantity,
                "price": transaction.price,
                "total_amount": transaction.total_amount,
                "created_at": transaction.created_at,
            },
        )
        return _row_to_transaction(result.fetchone())

    async def list_for_user(
        self,
        db: AsyncSession,
        user_id: str,
        tx_type: str | None,
        symbol: str | None,
        offset: int,
        limit: int,
    ) -> list[Transaction]:
        result = await db.execute(
            _LIST_SQL,
            {
                "user_id": user_id,
                "tx_type": tx_type,
                "symbol": symbol,
                "offset": offset,
                "limit": limit,
            },
        )
        return [_row_to_transaction(row) for row in result.fetchall()]

    async def count_for_user(
        self, db: AsyncSession, user_id: str, tx_type: str | None, symbol: str | None
    ) -> int:
        result = await db.execute(
            _COUNT_SQL, {"user_id": user_id, "tx_type": tx_type, "symbol": symbol}
        )
        return int(result.scalar_one())
