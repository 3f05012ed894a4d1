"""bk_portfolio REST API: 5 endpoints, all require a Bearer token."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from src.bk_common.response import ApiResponse, success_response
from src.bk_gateway.auth.dependencies import get_current_user_id
from src.bk_portfolio.application.schemas import TradeRequest
from src.bk_portfolio.application.service import PortfolioService
from src.bk_pricing.application.oracle import get_price_oracle

router = APIRouter(prefix="/portfolio", tags=["portfolio"])

_service: PortfolioService | None = None


async def get_portfolio_service() -> PortfolioService:
    global _service  # noqa: PLW0603
    if _service is None:
        _service = PortfolioService(oracle=await get_price_oracle())
    return _service


def _wrap(request: Request, data: object) -> ApiResponse:
    resp = success_response(data)
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("")
async def get_portfolio(
    user_id: Annotated[str, Depends(get_current_user_id)],
    service: Annotated[PortfolioService, Depends(get_portfolio_service)],
    request: Request,
) -> ApiResponse:
    data = await service.get_portfolio(user_id)
    return _wrap(request, data.model_dump(mode="json"))


@router.post("/buy")
async def buy(
    body: TradeRequest,
    user_id: Annotated[str, Depends(get_current_user_id)],
    service: Annotated[PortfolioService, Depends(get_portfolio_service)],
    request: Request,
) -> ApiResponse:
    data = await service.buy(user_id, body.symbol, body.quantity, body.price)
    return _wrap(request, data.model_dump(mode="json"))


@router.post("/sell")
async def sell(
    body: TradeRequest,
    user_id: Annotated[str, Depends(get_current_user_id)],
    service: Annotated[PortfolioService, Depends(get_portfolio_service)],
    request: Request,
) -> ApiResponse:
    data = await service.sell(user_id, body.symbol, body.quantity, body.price)
    return _wrap(request, data.model_dump(mode="json"))


@router.get("/transactions")
async def transaction_history(
    user_id: Annotated[str, Depends(get_current_user_id)],
    service: Annotated[PortfolioService, Depends(get_portfolio_service)],
    request: Request,
    page: int = Query(1, ge=1, description="Page number, 1-based"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    type: str | None = Query(None, description="Filter by BUY or SELL"),  # noqa: A002
    symbol: str | None = Query(None, description="Filter by symbol"),
) -> ApiResponse:
    data = await service.get_transaction_history(user_id, type, symbol, page, limit)
    return _wrap(request, data.model_dump(mode="json"))


@router.get("/holdings/{symbol}")
async def holding_details(
    symbol: str,
    user_id: Annotated[str, Depends(get_current_user_id)],
    service: Annotated[PortfolioService, Depends(get_portfolio_service)],
    request: Request,
) -> ApiResponse:
    data = await service.get_holding_details(user_id, symbol)
    return _wrap(request, data.model_dump(mode="json"))
