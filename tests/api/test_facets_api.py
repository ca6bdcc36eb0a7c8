"""Tests for the facets endpoint."""

import pytest
from httpx import AsyncClient


class TestFacetsEndpoint:
    """Tests for GET /facets."""

    @pytest.mark.asyncio
    async def test_facets_with_filters(self, client: AsyncClient, factory) -> None:
        """Counts per value, restricted by category."""
        section = await factory.group("Dimensions")
        width = await factory.group("Width", parent=section)
        narrow = await factory.value(width, "40 cm")
        wide = await factory.value(width, "50 cm")
        first = await factory.product(category_id=3)
        second = await factory.product(category_id=4)
        await factory.assign(narrow, product=first)
        await factory.assign(wide, product=second)

        everything = (await client.get("/facets")).json()
        category = (await client.get("/facets", params={"category_id": 3})).json()

        assert everything["total_groups"] == 1
        assert everything["total_values"] == 2
        group = everything["sections"][0]["groups"][0]
        assert group["name"] == "Width"
        assert group["product_count"] == 2
        filtered = category["sections"][0]["groups"][0]
        assert filtered["product_count"] == 1
        assert [(v["value"], v["product_count"]) for v in filtered["values"]] == [
            ("40 cm", 1),
            ("50 cm", 0),
        ]

    @pytest.mark.asyncio
    async def test_empty_catalog(self, client: AsyncClient) -> None:
        """No products, no facets."""
        response = await client.get("/facets")

        assert response.status_code == 200
        assert response.json() == {"sections": [], "total_groups": 0, "total_values": 0}
