"""Tests for the storefront, rotation and scheduler endpoints."""
from datetime import datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from pricelab.main import app
from pricelab.schemas.pricing import PriceResult, VariantRecord
from pricelab.schemas.rotation import RotationRunResult, SchedulerStatus, TenantRotationResult

ADMIN_HEADERS = {"x-api-key": "test-admin-key"}


@pytest.fixture
def resolver():
    mock = MagicMock()
    mock.resolve_price.return_value = PriceResult(
        price=Decimal("20.00"),
        is_test_price=True,
        experiment_id=12,
        variant=VariantRecord(id=31, name="Variant A", price=Decimal("20.00"), traffic_percent=33)
    )
    return mock


@pytest.fixture
def scheduler():
    mock = MagicMock()
    mock.run_scheduled_rotation = AsyncMock(
        return_value=RotationRunResult(started_at=datetime(2026, 3, 1, 12, 0), tenants_processed=2)
    )
    mock.start = AsyncMock()
    mock.stop = AsyncMock()
    mock.reset_prices = AsyncMock(
        return_value=TenantRotationResult(tenant="shop.myshopify.com", status="reset")
    )
    mock.get_status.return_value = SchedulerStatus(running=True, interval_active=True, tick_seconds=60)
    return mock


@pytest.fixture
def client(resolver, scheduler):
    # Lifespan is not entered; services are provided directly
    app.state.resolver = resolver
    app.state.scheduler = scheduler
    return TestClient(app)


def test_storefront_price_returns_resolved_price(client, resolver):
    response = client.get("/storefront/price", params={
        "productId": "123",
        "originalPrice": "25.00",
        "shop": "shop.myshopify.com",
        "sessionId": "abc",
        "customerId": "42"
    })

    assert response.status_code == 200
    body = response.json()
    assert body["price"] == "20.00"
    assert body["is_test_price"] is True
    assert body["experiment_id"] == 12

    product_id, original_price, session = resolver.resolve_price.call_args.args
    assert product_id == "123"
    assert original_price == Decimal("25.00")
    assert (session.tenant, session.session_id, session.customer_id) == ("shop.myshopify.com", "abc", "42")


def test_storefront_price_generates_session_id(client, resolver):
    client.get("/storefront/price", params={
        "productId": "123",
        "originalPrice": "25",
        "shop": "shop.myshopify.com"
    })

    session = resolver.resolve_price.call_args.args[2]
    assert session.session_id.startswith("session_")
    assert session.customer_id is None


@pytest.mark.parametrize("params", [
    {"originalPrice": "25", "shop": "shop.myshopify.com"},
    {"productId": "123", "shop": "shop.myshopify.com"},
    {"productId": "123", "originalPrice": "25"},
    {"productId": "123", "originalPrice": "0", "shop": "shop.myshopify.com"},
    {"productId": "123", "originalPrice": "free", "shop": "shop.myshopify.com"},
])
def test_storefront_price_missing_parameters(client, resolver, params):
    response = client.get("/storefront/price", params=params)

    assert response.status_code == 400
    assert response.json()["detail"] == "Missing required parameters"
    resolver.resolve_price.assert_not_called()


def test_manual_rotation_requires_admin_key(client, scheduler):
    assert client.post("/rotation/run").status_code == 401
    assert client.post("/rotation/run", headers={"x-api-key": "wrong"}).status_code == 401
    scheduler.run_scheduled_rotation.assert_not_awaited()


def test_manual_rotation_passes_tenant_and_force(client, scheduler):
    response = client.post(
        "/rotation/run",
        params={"tenant": "shop.myshopify.com", "force": "true"},
        headers=ADMIN_HEADERS
    )

    assert response.status_code == 200
    assert response.json()["tenants_processed"] == 2
    scheduler.run_scheduled_rotation.assert_awaited_once_with(tenant="shop.myshopify.com", force=True)


def test_cron_accepts_bearer_token(client, scheduler):
    response = client.get("/cron/rotate-prices", headers={"Authorization": "Bearer test-cron-secret"})

    assert response.status_code == 200
    scheduler.run_scheduled_rotation.assert_awaited_once_with()


def test_cron_accepts_token_header(client):
    response = client.post("/cron/rotate-prices", headers={"x-cron-token": "test-cron-secret"})

    assert response.status_code == 200


def test_cron_rejects_wrong_secret(client, scheduler):
    response = client.get("/cron/rotate-prices", headers={"Authorization": "Bearer nope"})

    assert response.status_code == 401
    scheduler.run_scheduled_rotation.assert_not_awaited()


def test_scheduler_status_and_control(client, scheduler):
    status = client.get("/rotation/status", headers=ADMIN_HEADERS)
    started = client.post("/scheduler/start", headers=ADMIN_HEADERS)
    stopped = client.post("/scheduler/stop", headers=ADMIN_HEADERS)

    assert status.json()["running"] is True
    assert started.status_code == 200
    assert stopped.status_code == 200
    scheduler.start.assert_awaited_once()
    scheduler.stop.assert_awaited_once()


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy", "service": "pricelab-backend"}


def test_trace_id_is_echoed(client):
    response = client.get("/health", headers={"X-Trace-ID": "trace-123"})

    assert response.headers["X-Trace-ID"] == "trace-123"


def test_reset_prices_for_tenant(client, scheduler):
    response = client.post("/rotation/reset", params={"tenant": "shop.myshopify.com"}, headers=ADMIN_HEADERS)

    assert response.status_code == 200
    assert response.json()["status"] == "reset"
    scheduler.reset_prices.assert_awaited_once_with("shop.myshopify.com")


def test_reset_prices_requires_admin_key_and_tenant(client, scheduler):
    assert client.post("/rotation/reset", params={"tenant": "shop.myshopify.com"}).status_code == 401
    assert client.post("/rotation/reset", headers=ADMIN_HEADERS).status_code == 422
    scheduler.reset_prices.assert_not_awaited()


def test_detailed_health_reports_scheduler(client):
    body = client.get("/health/detailed").json()

    assert body["checks"]["database"] == "healthy"
    assert body["scheduler"]["running"] is True
    assert body["scheduler"]["tick_seconds"] == 60
