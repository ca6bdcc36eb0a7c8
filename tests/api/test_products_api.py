"""Tests for product, variant and assignment endpoints."""

import pytest
from httpx import AsyncClient

from app.domain.state_machines import Lifecycle


class TestEffectiveEndpoint:
    """Tests for GET /products/{id}/effective."""

    @pytest.mark.asyncio
    async def test_product_and_variant(self, client: AsyncClient, factory) -> None:
        """Variant overrides apply only when a variant is given."""
        product = await factory.product(price_cents=12000, stock_quantity=4)
        variant = await factory.variant(product, stock_override=0, price_override_cents=9900)

        bare = (await client.get(f"/products/{product.id}/effective")).json()
        through_variant = (
            await client.get(f"/products/{product.id}/effective", params={"variant_id": variant.id})
        ).json()

        assert (bare["price"], bare["stock"], bare["variant_id"]) == (12000, 4, None)
        assert (through_variant["price"], through_variant["stock"]) == (9900, 0)
        assert through_variant["has_variant_overrides"] is True

    @pytest.mark.asyncio
    async def test_variant_of_other_product(self, client: AsyncClient, factory) -> None:
        """Mismatched product and variant is a 400."""
        product = await factory.product()
        other = await factory.product()
        variant = await factory.variant(other)

        response = await client.get(
            f"/products/{product.id}/effective", params={"variant_id": variant.id}
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_product(self, client: AsyncClient) -> None:
        """Unknown product is a 404."""
        response = await client.get("/products/999999/effective")
        assert response.status_code == 404
        assert response.json()["error_code"] == "NOT_FOUND"


class TestVariantEndpoints:
    """Tests for variant endpoints."""

    @pytest.mark.asyncio
    async def test_ensure_variant_status_codes(self, client: AsyncClient, factory) -> None:
        """201 on creation, 200 when the variant already exists."""
        product = await factory.product(sku="RL-010")

        created = await client.post(f"/products/{product.id}/variant")
        existing = await client.post(f"/products/{product.id}/variant")

        assert created.status_code == 201
        assert created.json()["created"] is True
        assert created.json()["variant"]["sku"].startswith("RL-010-VAR-")
        assert existing.status_code == 200
        assert existing.json()["variant"]["id"] == created.json()["variant"]["id"]

    @pytest.mark.asyncio
    async def test_list_and_soft_delete(self, client: AsyncClient, factory) -> None:
        """Soft-deleted variants leave the listing; a second delete is a 404."""
        product = await factory.product()
        variant = await factory.variant(product)
        product_id, variant_id = product.id, variant.id

        assert (await client.get(f"/products/{product_id}/variants")).json()["total"] == 1

        deleted = await client.delete(f"/variants/{variant_id}")
        assert deleted.status_code == 200
        assert deleted.json()["status"] == Lifecycle.DELETED.value
        assert deleted.json()["is_active"] is False

        assert (await client.get(f"/products/{product_id}/variants")).json()["total"] == 0
        assert (await client.delete(f"/variants/{variant_id}")).status_code == 404


class TestAssignmentEndpoints:
    """Tests for assignment and configurable endpoints."""

    @pytest.mark.asyncio
    async def test_replace_product_assignments(self, client: AsyncClient, factory) -> None:
        """PUT replaces the set and GET reads it back."""
        section = await factory.group("Dimensions")
        width = await factory.group("Width", parent=section)
        narrow = await factory.value(width, "40 cm")
        product = await factory.product()
        product_id, narrow_id = product.id, narrow.id

        put = await client.put(
            f"/products/{product_id}/assignments",
            json={"values": [{"value_id": narrow_id, "additional_value": "with cushion"}]},
        )
        assert put.status_code == 200

        data = (await client.get(f"/products/{product_id}/assignments")).json()
        assert data["owner_type"] == "product"
        assert data["assignments"] == [
            {
                "value_id": narrow_id,
                "value": "40 cm",
                "color_hex": None,
                "group_id": width.id,
                "group_name": "Width",
                "additional_value": "with cushion",
            }
        ]

        grouped = (await client.get(f"/products/{product_id}/characteristics")).json()
        assert grouped["sections"][0]["groups"][0]["values"][0]["is_selected"] is True

    @pytest.mark.asyncio
    async def test_duplicate_and_unknown_values(self, client: AsyncClient, factory) -> None:
        """Duplicates and unknown ids are 400s."""
        group = await factory.group("Size")
        value = await factory.value(group, "M")
        variant = await factory.variant(await factory.product())
        variant_id, value_id = variant.id, value.id

        duplicate = await client.put(
            f"/variants/{variant_id}/assignments",
            json={"values": [{"value_id": value_id}, {"value_id": value_id}]},
        )
        unknown = await client.put(
            f"/variants/{variant_id}/assignments", json={"values": [{"value_id": 987654}]}
        )

        assert duplicate.status_code == 400
        assert unknown.status_code == 400
        assert unknown.json()["details"]["value_ids"] == [987654]

    @pytest.mark.asyncio
    async def test_configurable_characteristics(self, client: AsyncClient, factory) -> None:
        """Arrays are stored whole; objects are rejected."""
        product = await factory.product()
        url = f"/products/{product.id}/configurable-characteristics"

        assert (await client.get(url)).json()["characteristics"] == []

        saved = await client.put(url, json={"characteristics": [{"name": "Engraving"}]})
        rejected = await client.put(url, json={"characteristics": {"name": "Engraving"}})

        assert saved.status_code == 200
        assert rejected.status_code == 400
        assert (await client.get(url)).json()["characteristics"] == [{"name": "Engraving"}]
