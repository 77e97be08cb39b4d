"""Tests for Problem documentation endpoints."""

import pytest
from httpx import AsyncClient

from codelingo.exceptions import ProblemDetail


@pytest.mark.asyncio
async def test_list_problem_types(client: AsyncClient) -> None:
    """Test listing all registered problem types."""
    response = await client.get("/v1/problems")
    assert response.status_code == 200

    data = response.json()
    assert "invalid-request" in data
    assert "forbidden" in data
    assert "room-not-found" in data
    assert "store-unavailable" in data

    # Verify URIs are correct
    assert data["room-not-found"] == "/v1/problems/room-not-found"


@pytest.mark.asyncio
async def test_get_problem_type_documentation(client: AsyncClient) -> None:
    """Test getting documentation for a specific problem type."""
    response = await client.get("/v1/problems/room-not-found")
    assert response.status_code == 200
    assert response.headers["content-type"] == "text/plain; charset=utf-8"

    content = response.text
    assert "# RoomNotFound" in content
    assert "**Status:** 404" in content
    assert "**Title:** Not Found" in content
    assert "referenced room does not exist" in content


@pytest.mark.asyncio
async def test_get_problem_type_not_found(client: AsyncClient) -> None:
    """Test that unknown problem type returns 404 with Problem JSON."""
    response = await client.get("/v1/problems/unknown-problem")
    assert response.status_code == 404
    assert response.headers["content-type"] == "application/problem+json"

    problem = ProblemDetail.model_validate(response.json())
    assert problem.title == "Not Found"
    assert problem.status == 404
    assert problem.detail is not None
    assert "unknown-problem" in problem.detail
