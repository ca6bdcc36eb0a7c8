"""Tests for API middleware and error mapping."""

import pytest
from httpx import AsyncClient


class TestRequestIdMiddleware:
    """Tests for request ID correlation middleware."""

    @pytest.mark.asyncio
    async def test_generates_request_id_if_not_provided(self, client: AsyncClient) -> None:
        """Should generate request ID if not in request headers."""
        response = await client.get("/health")
        assert response.status_code == 200
        # UUID format
        assert len(response.headers["X-Request-ID"]) == 36

    @pytest.mark.asyncio
    async def test_uses_provided_request_id(self, client: AsyncClient) -> None:
        """Should use request ID from request headers."""
        response = await client.get("/health", headers={"X-Request-ID": "custom-request-id-12345"})
        assert response.headers["X-Request-ID"] == "custom-request-id-12345"


class TestErrorResponses:
    """Tests for the standard error body."""

    @pytest.mark.asyncio
    async def test_not_found_body(self, client: AsyncClient) -> None:
        """Domain not-found errors carry code, details and request ID."""
        response = await client.get(
            "/taxonomy/groups/424242/values", headers={"X-Request-ID": "trace-1"}
        )

        assert response.status_code == 404
        data = response.json()
        assert data["error_code"] == "NOT_FOUND"
        assert data["details"] == {"entity_type": "CharacteristicGroup", "entity_id": 424242}
        assert data["request_id"] == "trace-1"

    @pytest.mark.asyncio
    async def test_malformed_request_is_validation_error(self, client: AsyncClient) -> None:
        """Schema violations are reported as 400 validation errors."""
        response = await client.post("/taxonomy/groups", json={"parent_id": "not-a-number"})

        assert response.status_code == 400
        data = response.json()
        assert data["error_code"] == "VALIDATION_ERROR"
        assert data["details"]["errors"]
