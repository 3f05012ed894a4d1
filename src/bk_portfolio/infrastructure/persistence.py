"""PortfolioRepository: portfolios and their holdings.

Portfolio aggregates are a projection of the holdings; they are only written
together with the holdings they were computed from.

Versioning: ``portfolios.version`` is bumped by commit_totals (buy/sell) and
checked by both commit_totals and store_snapshot. store_snapshot does NOT
bump it, so a read-path refresh never makes a concurrent trade retry, while
a trade that committed in between makes the refresh skip its write.

Transaction ownership: the CALLER opens and commits the unit of work.
"""

from datetime import datetime

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.bk_common.errors import StaleWriteError
from src.bk_portfolio.domain.models import Holding, Portfolio, PortfolioTotals

_PORTFOLIO_COLUMNS = """id, user_id, total_value, total_invested, total_profit_loss,
           profit_loss_percentage, last_updated, version"""

_HOLDING_COLUMNS = """symbol, quantity, average_buy_price, total_invested,
           current_price, current_value, profit_loss, profit_loss_percentage"""

# ---------------------------------------------------------------------------
# SQL: portfolios
# ---------------------------------------------------------------------------

_GET_PORTFOLIO_SQL = text(f"""
    SELECT {_PORTFOLIO_COLUMNS}
    FROM portfolios
    WHERE user_id = :user_id
""")

_INSERT_PORTFOLIO_SQL = text("""
    INSERT INTO portfolios (user_id)
    VALUES (:user_id)
    ON CONFLICT (user_id) DO NOTHING
""")

_COMMIT_TOTALS_SQL = text("""
    UPDATE portfolios
    SET total_value = :total_value,
        total_invested = :total_invested,
        total_profit_loss = :total_profit_loss,
        profit_loss_percentage = :profit_loss_percentage,
        last_updated = :last_updated,
        version = version + 1
    WHERE id = :portfolio_id AND version = :expected_version
    RETURNING version
""")

_STORE_SNAPSHOT_SQL = text("""
    UPDATE portfolios
    SET total_value = :total_value,
        total_invested = :total_invested,
        total_profit_loss = :total_profit_loss,
        profit_loss_percentage = :profit_loss_percentage,
        last_updated = :last_updated
    WHERE id = :portfolio_id AND version = :expected_version
    RETURNING id
""")

# ---------------------------------------------------------------------------
# SQL: holdings
# ---------------------------------------------------------------------------

_LIST_HOLDINGS_SQL = text(f"""
    SELECT {_HOLDING_COLUMNS}
    FROM holdings
    WHERE portfolio_id = :portfolio_id
    ORDER BY created_at, id
""")

_UPSERT_HOLDING_SQL = text("""
    INSERT INTO holdings
        (portfolio_id, symbol, quantity, average_buy_price, total_invested,
         current_price, current_value, profit_loss, profit_loss_percentage)
    VALUES
        (:portfolio_id, :symbol, :quantity, :average_buy_price, :total_invested,
         :current_price, :current_value, :profit_loss, :profit_loss_percentage)
    ON CONFLICT (portfolio_id, symbol) DO UPDATE
        SET quantity = EXCLUDED.quantity,
            average_buy_price = EXCLUDED.average_buy_price,
            total_invested = EXCLUDED.total_invested,
            current_price = EXCLUDED.current_price,
            current_value = EXCLUDED.current_value,
            profit_loss = EXCLUDED.profit_loss,
            profit_loss_percentage = EXCLUDED.profit_loss_percentage
""")

_DELETE_HOLDING_SQL = text("""
    DELETE FROM holdings
    WHERE portfolio_id = :portfolio_id AND symbol = :symbol
""")

_UPDATE_VALUATION_SQL = text("""
    UPDATE holdings
    SET current_price = :current_price,
        current_value = :current_value,
        profit_loss = :profit_loss,
        profit_loss_percentage = :profit_loss_percentage
    WHERE portfolio_id = :portfolio_id AND symbol = :symbol
""")


def _row_to_holding(row: object) -> Holding:
    return Holding(
        symbol=row.symbol,  # type: ignore[attr-defined]
        quantity=row.quantity,  # type: ignore[attr-defined]
        average_buy_price=row.average_buy_price,  # type: ignore[attr-defined]
        total_invested=row.total_invested,  # type: ignore[attr-defined]
        current_price=row.current_price,  # type: ignore[attr-defined]
        current_value=row.current_value,  # type: ignore[attr-defined]
        profit_loss=row.profit_loss,  # type: ignore[attr-defined]
        profit_loss_percentage=row.profit_loss_percentage,  # type: ignore[attr-defined]
    )


def _row_to_portfolio(row: object, holdings: list[Holding]) -> Portfolio:
    return Portfolio(
        id=str(row.id),  # type: ignore[attr-defined]
        user_id=row.user_id,  # type: ignore[attr-defined]
        holdings=holdings,
        totals=PortfolioTotals(
            total_invested=row.total_invested,  # type: ignore[attr-defined]
            total_value=row.total_value,  # type: ignore[attr-defined]
            total_profit_loss=row.total_profit_loss,  # type: ignore[attr-defined]
            profit_loss_percentage=row.profit_loss_percentage,  # type: ignore[attr-defined]
        ),
        last_updated=row.last_updated,  # type: ignore[attr-defined]
        version=row.version,  # type: ignore[attr-defined]
    )


def _totals_params(totals: PortfolioTotals) -> dict[str, object]:
    return {
        "total_value": totals.total_value,
        "total_invested": totals.total_invested,
        "total_profit_loss": totals.total_profit_loss,
        "profit_loss_percentage": totals.profit_loss_percentage,
    }


def _valuation_params(portfolio_id: str, holding: Holding) -> dict[str, object]:
    return {
        "portfolio_id": portfolio_id,
        "symbol": holding.symbol,
        "current_price": holding.current_price,
        "current_value": holding.current_value,
        "profit_loss": holding.profit_loss,
        "profit_loss_percentage": holding.profit_loss_percentage,
    }


class PortfolioRepository:
    async def get_portfolio(self, db: AsyncSession, user_id: str) -> Portfolio | None:
        row = (await db.execute(_GET_PORTFOLIO_SQL, {"user_id": user_id})).fetchone()
        if row is None:
            return None
        holding_rows = (
            await db.execute(_LIST_HOLDINGS_SQL, {"portfolio_id": row.id})
        ).fetchall()
        return _row_to_portfolio(row, [_row_to_holding(r) for r in holding_rows])

    async def ensure_portfolio(self, db: AsyncSession, user_id: str) -> Portfolio:
        """Create the user's portfolio if missing, then load it.

        Re-reading after the insert picks up holdings committed by a
        concurrent creator.
        """
        await db.execute(_INSERT_PORTFOLIO_SQL, {"user_id": user_id})
        portfolio = await self.get_portfolio(db, user_id)
        if portfolio is None:
            raise StaleWriteError("portfolios", user_id)
        return portfolio

    async def upsert_holding(
        self, db: AsyncSession, portfolio_id: str, holding: Holding
    ) -> None:
        params = _valuation_params(portfolio_id, holding)
        params.update(
            quantity=holding.quantity,
            average_buy_price=holding.average_buy_price,
            total_invested=holding.total_invested,
        )
        await db.execute(_UPSERT_HOLDING_SQL, params)

    async def delete_holding(self, db: AsyncSession, portfolio_id: str, symbol: str) -> None:
        await db.execute(_DELETE_HOLDING_SQL, {"portfolio_id": portfolio_id, "symbol": symbol})

    async def commit_totals(
        self,
        db: AsyncSession,
        portfolio_id: str,
        totals: PortfolioTotals,
        last_updated: datetime,
        expected_version: int,
    ) -> int:
        """Write aggregates and bump the version; returns the new version."""
        params = _totals_params(totals)
        params.update(
            portfolio_id=portfolio_id,
            last_updated=last_updated,
            expected_version=expected_version,
        )
        row = (await db.execute(_COMMIT_TOTALS_SQL, params)).fetchone()
        if row is None:
            raise StaleWriteError("portfolios", portfolio_id)
        return int(row.version)

    async def store_snapshot(
        self,
        db: AsyncSession,
        portfolio_id: str,
        holdings: list[Holding],
        totals: PortfolioTotals,
        last_updated: datetime,
        expected_version: int,
    ) -> bool:
        """Persist a refreshed valuation; False if a trade got there first."""
        params = _totals_params(totals)
        params.update(
            portfolio_id=portfolio_id,
            last_updated=last_updated,
            expected_version=expected_version,
        )
        row = (await db.execute(_STORE_SNAPSHOT_SQL, params)).fetchone()
        if row is None:
            return False
        for holding in holdings:
            await db.execute(_UPDATE_VALUATION_SQL, _valuation_params(portfolio_id, holding))
        return True
