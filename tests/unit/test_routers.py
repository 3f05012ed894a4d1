"""HTTP-level tests: routing, envelope, error mapping and auth.

The service layer runs against the in-memory repositories from conftest;
authentication is overridden except where it is under test.
"""

from collections.abc import AsyncGenerator
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import AsyncClient

from src.bk_account.api.router import get_account_service
from src.bk_account.application.schemas import BalanceResponse
from src.bk_common.database import get_db_session
from src.bk_gateway.auth.dependencies import get_current_user_id
from src.bk_portfolio.api.router import get_portfolio_service
from src.main import app


@pytest.fixture
def authed(store, service) -> None:
    async def _session() -> AsyncGenerator[MagicMock, None]:
        yield MagicMock()

    app.dependency_overrides[get_current_user_id] = lambda: "user-1"
    app.dependency_overrides[get_portfolio_service] = lambda: service
    app.dependency_overrides[get_db_session] = _session
    store.seed_account("user-1", "10000.00")


class TestHealth:
    async def test_health(self, client: AsyncClient) -> None:
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"

    async def test_generates_request_id(self, client: AsyncClient) -> None:
        resp = await client.get("/health")
        assert resp.headers["X-Request-ID"].startswith("req_")

    async def test_propagates_inbound_request_id(self, client: AsyncClient) -> None:
        resp = await client.get("/health", headers={"X-Request-ID": "gw-12345678"})
        assert resp.headers["X-Request-ID"] == "gw-12345678"

    async def test_ignores_malformed_request_id(self, client: AsyncClient) -> None:
        resp = await client.get("/health", headers={"X-Request-ID": "bad id!"})
        assert resp.headers["X-Request-ID"].startswith("req_")


class TestAuth:
    async def test_portfolio_requires_token(self, client: AsyncClient) -> None:
        resp = await client.get("/api/v1/portfolio")
        assert resp.status_code == 401

    async def test_bad_token(self, client: AsyncClient) -> None:
        resp = await client.get(
            "/api/v1/account/balance", headers={"Authorization": "Bearer nope"}
        )
        assert resp.status_code == 401


@pytest.mark.usefixtures("authed")
class TestPortfolioRoutes:
    async def test_buy_returns_envelope(self, client: AsyncClient) -> None:
        resp = await client.post(
            "/api/v1/portfolio/buy", json={"symbol": "aapl", "quantity": 10, "price": "150"}
        )

        assert resp.status_code == 200
        body = resp.json()
        assert body["code"] == 0
        assert body["data"]["symbol"] == "AAPL"
        assert body["data"]["type"] == "BUY"
        assert Decimal(body["data"]["total_cost"]) == Decimal("1500.00")
        assert Decimal(body["data"]["new_balance"]) == Decimal("8500.00")
        assert body["request_id"] == resp.headers["X-Request-ID"]

    async def test_invalid_trade_lists_every_field(self, client: AsyncClient) -> None:
        resp = await client.post(
            "/api/v1/portfolio/buy", json={"symbol": "", "quantity": -5, "price": 0}
        )

        assert resp.status_code == 400
        body = resp.json()
        assert body["code"] == 4001
        assert len(body["data"]["errors"]) == 3

    async def test_non_numeric_quantity_uses_error_envelope(self, client: AsyncClient) -> None:
        resp = await client.post(
            "/api/v1/portfolio/buy", json={"symbol": "", "quantity": "abc", "price": -1}
        )

        assert resp.status_code == 400
        body = resp.json()
        assert body["code"] == 4001
        assert body["data"]["errors"] == [
            "Valid symbol is required",
            "Valid positive quantity is required",
            "Valid positive price is required",
        ]

    async def test_sub_cent_trade_is_rejected(self, client: AsyncClient) -> None:
        resp = await client.post(
            "/api/v1/portfolio/buy", json={"symbol": "AAPL", "quantity": "0.004", "price": 1}
        )

        assert resp.status_code == 400
        assert resp.json()["data"]["errors"] == ["Trade value must be at least 0.01"]

    async def test_insufficient_balance(self, client: AsyncClient) -> None:
        resp = await client.post(
            "/api/v1/portfolio/buy", json={"symbol": "AAPL", "quantity": 1000, "price": 150}
        )

        assert resp.status_code == 422
        body = resp.json()
        assert body["code"] == 2001
        assert body["data"] == {"required": "150000.00", "available": "10000.00"}

    async def test_sell_without_portfolio(self, client: AsyncClient) -> None:
        resp = await client.post(
            "/api/v1/portfolio/sell", json={"symbol": "AAPL", "quantity": 1, "price": 150}
        )

        assert resp.status_code == 404
        assert resp.json()["code"] == 3001

    async def test_portfolio_view(self, client: AsyncClient) -> None:
        await client.post(
            "/api/v1/portfolio/buy", json={"symbol": "AAPL", "quantity": 2, "price": 100}
        )

        resp = await client.get("/api/v1/portfolio")

        data = resp.json()["data"]
        assert len(data["holdings"]) == 1
        assert Decimal(data["total_invested"]) == Decimal("200.00")
        assert Decimal(data["total_value"]) == Decimal("300.00")
        assert data["last_updated"] is not None

    async def test_empty_portfolio_view(self, client: AsyncClient) -> None:
        resp = await client.get("/api/v1/portfolio")

        data = resp.json()["data"]
        assert data["holdings"] == []
        assert data["last_updated"] is None

    async def test_transactions_pagination(self, client: AsyncClient) -> None:
        for _ in range(3):
            await client.post(
                "/api/v1/portfolio/buy", json={"symbol": "MSFT", "quantity": 1, "price": 10}
            )

        resp = await client.get("/api/v1/portfolio/transactions", params={"limit": 2})

        data = resp.json()["data"]
        assert len(data["items"]) == 2
        assert data["pagination"]["total_transactions"] == 3
        assert data["pagination"]["has_next"] is True

    async def test_transactions_limit_out_of_range(self, client: AsyncClient) -> None:
        resp = await client.get("/api/v1/portfolio/transactions", params={"limit": 500})
        assert resp.status_code == 422

    async def test_transactions_bad_type(self, client: AsyncClient) -> None:
        resp = await client.get("/api/v1/portfolio/transactions", params={"type": "HOLD"})
        assert resp.status_code == 400
        assert resp.json()["code"] == 4001

    async def test_holding_details_not_found(self, client: AsyncClient) -> None:
        await client.post(
            "/api/v1/portfolio/buy", json={"symbol": "AAPL", "quantity": 1, "price": 100}
        )

        resp = await client.get("/api/v1/portfolio/holdings/tsla")

        assert resp.status_code == 404
        body = resp.json()
        assert body["code"] == 3002
        assert body["data"] == {"symbol": "TSLA"}


@pytest.mark.usefixtures("authed")
class TestAccountRoutes:
    async def test_balance(self, client: AsyncClient) -> None:
        account_service = AsyncMock()
        account_service.get_balance.return_value = BalanceResponse.from_balance(
            "user-1", Decimal("1500.00")
        )
        app.dependency_overrides[get_account_service] = lambda: account_service

        resp = await client.get("/api/v1/account/balance")

        assert resp.status_code == 200
        assert resp.json()["data"]["balance_display"] == "$1,500.00"

    async def test_deposit_rejects_non_positive_amount(self, client: AsyncClient) -> None:
        resp = await client.post("/api/v1/account/deposit", json={"amount": "0"})
        assert resp.status_code == 422

    async def test_deposit_rejects_sub_cent_amount(self, client: AsyncClient) -> None:
        resp = await client.post("/api/v1/account/deposit", json={"amount": "1.001"})
        assert resp.status_code == 422
