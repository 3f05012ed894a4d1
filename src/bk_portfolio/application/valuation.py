"""Read-path valuation: revalue holdings at market, then cache the snapshot.

Revaluing (oracle + pure accounting) and persisting are separate steps so
the read stays usable even when the snapshot write is skipped.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from src.bk_common.datetime_utils import utc_now
from src.bk_portfolio.domain.accounting import aggregate_totals, value_holding
from src.bk_portfolio.domain.models import Holding, Portfolio, PortfolioTotals
from src.bk_portfolio.domain.repository import PortfolioRepositoryProtocol
from src.bk_pricing.domain.protocols import PriceOracleProtocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValuedPortfolio:
    portfolio: Portfolio
    holdings: list[Holding]
    totals: PortfolioTotals
    refreshed_at: datetime


class PortfolioValuator:
    def __init__(
        self, oracle: PriceOracleProtocol, repo: PortfolioRepositoryProtocol
    ) -> None:
        self._oracle = oracle
        self._repo = repo

    async def revalue(self, portfolio: Portfolio) -> ValuedPortfolio:
        prices = await self._oracle.get_prices([h.symbol for h in portfolio.holdings])
        holdings = [value_holding(h, prices[h.symbol]) for h in portfolio.holdings]
        return ValuedPortfolio(
            portfolio=portfolio,
            holdings=holdings,
            totals=aggregate_totals(holdings),
            refreshed_at=utc_now(),
        )

    async def persist(self, db: AsyncSession, valued: ValuedPortfolio) -> bool:
        stored = await self._repo.store_snapshot(
            db,
            valued.portfolio.id,
            valued.holdings,
            valued.totals,
            valued.refreshed_at,
            valued.portfolio.version,
        )
        if not stored:
            logger.debug(
                "Snapshot for portfolio %s skipped: version %d is stale",
                valued.portfolio.id,
                valued.portfolio.version,
            )
        return stored
