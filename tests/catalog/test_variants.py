"""Tests for variant override resolution and default variants."""

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.catalog.models import Product, ProductVariant
from app.catalog.repository import ProductRepository
from app.catalog.service import CatalogService
from app.catalog.variants import resolve_effective
from app.domain.exceptions import NotFoundError, ValidationError
from app.domain.state_machines import Lifecycle


def make_product(**fields) -> Product:
    """Build a detached product."""
    defaults = {
        "id": 1,
        "name": "Walker",
        "price_cents": 10000,
        "discount_price_cents": None,
        "stock_quantity": 7,
        "base_attributes": {"material": "steel", "weight": "4 kg"},
    }
    return Product(**{**defaults, **fields})


def make_variant(**fields) -> ProductVariant:
    """Build a detached variant of product 1."""
    defaults = {"id": 10, "master_id": 1, "sku": "W-1", "name": "Walker blue", "attributes": {}}
    return ProductVariant(**{**defaults, **fields})


async def live_variant_count(session: AsyncSession, product_id: int) -> int:
    """Count non-deleted variants of a product."""
    return await session.scalar(
        select(func.count(ProductVariant.id)).where(
            ProductVariant.master_id == product_id,
            ProductVariant.status != Lifecycle.DELETED.value,
        )
    )


class TestResolveEffective:
    """Tests for resolve_effective."""

    def test_product_without_variant(self) -> None:
        """A bare product resolves to its own values."""
        effective = resolve_effective(make_product())

        assert effective.price_cents == 10000
        assert effective.stock == 7
        assert effective.discount_price_cents is None
        assert effective.variant_id is None
        assert effective.has_variant_overrides is False

    def test_price_override_applies(self) -> None:
        """A set price override replaces the master price."""
        effective = resolve_effective(make_product(), make_variant(price_override_cents=8500))
        assert effective.price_cents == 8500
        assert effective.has_variant_overrides is True

    def test_unset_price_override_inherits(self) -> None:
        """An unset price override falls back to the master price."""
        effective = resolve_effective(make_product(), make_variant(price_override_cents=None))
        assert effective.price_cents == 10000
        assert effective.has_variant_overrides is False

    def test_zero_stock_override_is_respected(self) -> None:
        """Zero stock on the variant means out of stock, not inherit."""
        effective = resolve_effective(make_product(stock_quantity=7), make_variant(stock_override=0))
        assert effective.stock == 0

    def test_zero_price_override_is_respected(self) -> None:
        """A free variant stays free."""
        effective = resolve_effective(make_product(), make_variant(price_override_cents=0))
        assert effective.price_cents == 0

    def test_discount_inherits_and_overrides(self) -> None:
        """Discount follows the same presence rule."""
        product = make_product(discount_price_cents=9000)
        assert resolve_effective(product, make_variant()).discount_price_cents == 9000
        assert (
            resolve_effective(product, make_variant(discount_price_cents=7000)).discount_price_cents
            == 7000
        )

    def test_attributes_merge_with_variant_precedence(self) -> None:
        """Variant attributes win on conflicting keys."""
        effective = resolve_effective(
            make_product(), make_variant(attributes={"color": "blue", "weight": "3.5 kg"})
        )
        assert effective.attributes == {"material": "steel", "weight": "3.5 kg", "color": "blue"}

    def test_variant_of_other_product_rejected(self) -> None:
        """A variant must belong to the product it is resolved against."""
        with pytest.raises(ValidationError):
            resolve_effective(make_product(id=1), make_variant(master_id=2))


class TestVariantService:
    """Tests for variant operations on the catalog service."""

    @pytest.mark.asyncio
    async def test_resolve_loads_rows(self, service: CatalogService, factory) -> None:
        """Service resolution applies the variant's overrides."""
        product = await factory.product(price_cents=5000, stock_quantity=3)
        variant = await factory.variant(product, stock_override=0)

        effective = await service.resolve_effective(product.id, variant.id)

        assert effective.price_cents == 5000
        assert effective.stock == 0

    @pytest.mark.asyncio
    async def test_resolve_unknown_or_deleted(self, service: CatalogService, factory) -> None:
        """Unknown products and deleted variants are not found."""
        product = await factory.product()
        deleted = await factory.variant(product, status=Lifecycle.DELETED)

        with pytest.raises(NotFoundError):
            await service.resolve_effective(999999)
        with pytest.raises(NotFoundError):
            await service.resolve_effective(product.id, deleted.id)

    @pytest.mark.asyncio
    async def test_ensure_variant_creates_once(
        self, service: CatalogService, session: AsyncSession, factory
    ) -> None:
        """Calling twice yields exactly one live variant."""
        product = await factory.product(name="Cane", sku="CANE-1")
        product_id = product.id

        first = await service.ensure_variant(product_id)
        second = await service.ensure_variant(product_id)

        assert first.created is True
        assert second.created is False
        assert second.variant.id == first.variant.id
        assert first.variant.sku.startswith("CANE-1-VAR-")
        assert first.variant.name == "Cane Variant"
        assert first.variant.is_default is True
        assert await live_variant_count(session, product_id) == 1

    @pytest.mark.asyncio
    async def test_ensure_variant_returns_existing(self, service: CatalogService, factory) -> None:
        """An existing live variant is returned unchanged."""
        product = await factory.product()
        existing = await factory.variant(product, price_override_cents=100)

        result = await service.ensure_variant(product.id)

        assert result.created is False
        assert result.variant.id == existing.id
        assert result.variant.price_override_cents == 100

    @pytest.mark.asyncio
    async def test_losing_insert_is_skipped(
        self, session: AsyncSession, factory
    ) -> None:
        """Two inserts racing past the existence check leave one default variant."""
        product = await factory.product()
        product_id = product.id
        repository = ProductRepository(session)

        winner = await repository.insert_default_variant(product_id, "RACE-1", "Race")
        loser = await repository.insert_default_variant(product_id, "RACE-2", "Race")
        await session.commit()

        assert winner is not None
        assert loser is None
        assert await live_variant_count(session, product_id) == 1

    @pytest.mark.asyncio
    async def test_ensure_variant_unknown_product(self, service: CatalogService, factory) -> None:
        """Deleted and unknown products cannot get variants."""
        deleted = await factory.product(status=Lifecycle.DELETED)
        deleted_id = deleted.id

        with pytest.raises(NotFoundError):
            await service.ensure_variant(deleted_id)
        with pytest.raises(NotFoundError):
            await service.ensure_variant(999999)

    @pytest.mark.asyncio
    async def test_soft_delete_then_recreate(
        self, service: CatalogService, session: AsyncSession, factory
    ) -> None:
        """A soft-deleted default no longer blocks a new default."""
        product = await factory.product()
        product_id = product.id
        first = await service.ensure_variant(product_id)
        first_id = first.variant.id

        deleted = await service.soft_delete_variant(first_id)
        assert deleted.lifecycle is Lifecycle.DELETED
        assert deleted.to_dict()["is_active"] is False
        assert deleted.to_dict()["is_deleted"] is True

        second = await service.ensure_variant(product_id)
        assert second.created is True
        assert second.variant.id != first_id
        assert await live_variant_count(session, product_id) == 1

        with pytest.raises(NotFoundError):
            await service.soft_delete_variant(first_id)

    @pytest.mark.asyncio
    async def test_list_variants_and_has_variants(self, service: CatalogService, factory) -> None:
        """Listing skips deleted variants; has_variants checks active ones."""
        with_variants = await factory.product()
        inactive_only = await factory.product()
        bare = await factory.product()
        live = await factory.variant(with_variants)
        await factory.variant(with_variants, status=Lifecycle.DELETED)
        await factory.variant(inactive_only, status=Lifecycle.INACTIVE)

        variants = await service.list_variants(with_variants.id)
        flags = await service.has_variants([with_variants.id, inactive_only.id, bare.id, 999999])

        assert [v.id for v in variants] == [live.id]
        assert flags == {
            with_variants.id: True,
            inactive_only.id: False,
            bare.id: False,
            999999: False,
        }
