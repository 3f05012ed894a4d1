"""bk_account REST API: 3 endpoints, all require a Bearer token."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.bk_account.application.schemas import DepositRequest, WithdrawRequest
from src.bk_account.application.service import AccountApplicationService
from src.bk_common.database import get_db_session
from src.bk_common.response import ApiResponse, success_response
from src.bk_gateway.auth.dependencies import get_current_user_id

router = APIRouter(prefix="/account", tags=["account"])

_service = AccountApplicationService()


def get_account_service() -> AccountApplicationService:
    return _service


@router.get("/balance")
async def get_balance(
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[AccountApplicationService, Depends(get_account_service)],
    request: Request,
) -> ApiResponse:
    data = await service.get_balance(db, user_id)
    resp = success_response(data.model_dump(mode="json"))
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/deposit")
async def deposit(
    body: DepositRequest,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[AccountApplicationService, Depends(get_account_service)],
    request: Request,
) -> ApiResponse:
    data = await service.deposit(db, user_id, body.amount)
    resp = success_response(data.model_dump(mode="json"))
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/withdraw")
async def withdraw(
    body: WithdrawRequest,
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[AccountApplicationService, Depends(get_account_service)],
    request: Request,
) -> ApiResponse:
    data = await service.withdraw(db, user_id, body.amount)
    resp = success_response(data.model_dump(mode="json"))
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp
