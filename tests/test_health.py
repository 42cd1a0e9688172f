"""Health check endpoint tests."""

import pytest


@pytest.mark.asyncio
async def test_health_check(client):
    response = await client.get("/api/v1/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["service"] == "agencyflow-api"
    assert data["checks"]["database"] == "ok"
    assert "X-Trace-Id" in response.headers


@pytest.mark.asyncio
async def test_trace_id_is_echoed(client):
    response = await client.get("/api/v1/health", headers={"X-Trace-Id": "trc_fromcaller"})
    assert response.headers["X-Trace-Id"] == "trc_fromcaller"
