import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    """Test basic health check."""
    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"


@pytest.mark.asyncio
async def test_health_ready(client: AsyncClient):
    """Test readiness check with database connection."""
    response = await client.get("/health/ready")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ready"
    assert data["database"] == "connected"
    assert data["reconciliations_in_flight"] == 0


@pytest.mark.asyncio
async def test_response_has_request_id(client: AsyncClient):
    """Every response carries the request ID used in the logs."""
    response = await client.get("/health")
    assert response.headers.get("X-Request-ID")
