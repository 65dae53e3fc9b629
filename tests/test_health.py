"""Health check tests."""

import pytest


@pytest.mark.asyncio
async def test_health_check(client):
    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"


@pytest.mark.asyncio
async def test_readiness_check(client, ledger):
    response = await client.get("/ready")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ready"
    assert data["checks"] == {"ledger": "ok", "api": "ok"}
    assert ledger.calls == ["ping"]


@pytest.mark.asyncio
async def test_readiness_check_degraded_without_ledger(client, ledger):
    ledger.fail_on = {"ping"}
    response = await client.get("/ready")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "degraded"
    assert data["checks"]["ledger"] == "error: ping failed"


@pytest.mark.asyncio
async def test_request_id_is_echoed(client):
    response = await client.get("/health", headers={"x-request-id": "abc123"})
    assert response.headers["x-request-id"] == "abc123"


@pytest.mark.asyncio
async def test_request_id_is_generated(client):
    response = await client.get("/health")
    assert len(response.headers["x-request-id"]) == 32
