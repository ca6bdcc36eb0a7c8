"""Variant override resolution and default-variant management.

A variant carries nullable overrides of its master's price, discount and
stock. Resolution maps each nullable column to an ``Override`` and
branches on presence, so a zero stock override means "out of stock"
instead of falling back to the master.
"""

import time
from dataclasses import dataclass
from typing import Any

import structlog

from app.catalog.models import Product, ProductVariant
from app.catalog.repository import ProductRepository
from app.domain.exceptions import NotFoundError, ValidationError
from app.domain.state_machines import Lifecycle, validate_lifecycle_transition
from app.domain.value_objects import Override
from app.infrastructure.database import UnitOfWork

logger = structlog.get_logger()


@dataclass(frozen=True)
class EffectiveValues:
    """Caller-facing values of a product, optionally seen through a variant.

    Attributes:
        product_id: Master product.
        variant_id: Variant applied, None for the bare product.
        price_cents: Effective price.
        discount_price_cents: Effective discounted price, None for no discount.
        stock: Effective stock.
        attributes: Master attributes merged with variant attributes.
        has_variant_overrides: Whether any override replaced a master value.
    """

    product_id: int
    variant_id: int | None
    price_cents: int
    discount_price_cents: int | None
    stock: int
    attributes: dict[str, Any]
    has_variant_overrides: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "product_id": self.product_id,
            "variant_id": self.variant_id,
            "price": self.price_cents,
            "discount_price": self.discount_price_cents,
            "stock": self.stock,
            "attributes": dict(self.attributes),
            "has_variant_overrides": self.has_variant_overrides,
        }


def resolve_effective(product: Product, variant: ProductVariant | None = None) -> EffectiveValues:
    """Compute effective price, stock and attributes.

    Args:
        product: Master product.
        variant: Optional variant of that product.

    Returns:
        Effective values.

    Raises:
        ValidationError: If the variant belongs to another product.
    """
    base_attributes = dict(product.base_attributes or {})
    if variant is None:
        return EffectiveValues(
            product_id=product.id,
            variant_id=None,
            price_cents=product.price_cents,
            discount_price_cents=product.discount_price_cents,
            stock=product.stock_quantity,
            attributes=base_attributes,
        )

    if variant.master_id != product.id:
        raise ValidationError(
            f"Variant {variant.id} does not belong to product {product.id}",
            field="variant_id",
            master_id=variant.master_id,
        )

    price = Override.from_nullable(variant.price_override_cents)
    discount = Override.from_nullable(variant.discount_price_cents)
    stock = Override.from_nullable(variant.stock_override)

    return EffectiveValues(
        product_id=product.id,
        variant_id=variant.id,
        price_cents=price.resolve(product.price_cents),
        discount_price_cents=discount.resolve(product.discount_price_cents),
        stock=stock.resolve(product.stock_quantity),
        attributes={**base_attributes, **(variant.attributes or {})},
        has_variant_overrides=price.is_set or discount.is_set or stock.is_set,
    )


@dataclass
class EnsureVariantResult:
    """Outcome of ``ensure_variant``."""

    variant: ProductVariant
    created: bool

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {"variant": self.variant.to_dict(), "created": self.created}


def default_variant_sku(product: Product) -> str:
    """Generate the SKU of an auto-created default variant."""
    base = product.sku or str(product.id)
    return f"{base}-VAR-{int(time.time() * 1000)}"


class VariantService:
    """Variant lookup, idempotent creation and soft deletion."""

    def __init__(self, repository: ProductRepository, uow: UnitOfWork) -> None:
        """Initialize service.

        Args:
            repository: Product repository.
            uow: Transaction scope for mutations.
        """
        self.repository = repository
        self.uow = uow

    async def _get_product(self, product_id: int) -> Product:
        product = await self.repository.get_by_id(product_id)
        if product is None:
            raise NotFoundError("Product", product_id)
        return product

    async def resolve(self, product_id: int, variant_id: int | None = None) -> EffectiveValues:
        """Load rows and resolve effective values.

        Raises:
            NotFoundError: Unknown or deleted product or variant.
            ValidationError: Variant of a different product.
        """
        product = await self._get_product(product_id)
        variant = None
        if variant_id is not None:
            variant = await self.repository.get_variant(variant_id)
            if variant is None:
                raise NotFoundError("ProductVariant", variant_id)
        return resolve_effective(product, variant)

    async def has_variants(self, product_ids: list[int]) -> dict[int, bool]:
        """Report which products have at least one active variant."""
        return await self.repository.variant_existence(product_ids)

    async def list_variants(self, product_id: int) -> list[ProductVariant]:
        """List live variants of a product, newest first."""
        await self._get_product(product_id)
        return list(await self.repository.list_live_variants(product_id))

    async def ensure_variant(self, product_id: int) -> EnsureVariantResult:
        """Return the product's live variant, creating a default one if none exists.

        The insert skips on conflict with the partial unique index over
        live default variants, so two concurrent calls end up with the
        same single variant.

        Args:
            product_id: Master product.

        Returns:
            The variant and whether this call created it.

        Raises:
            NotFoundError: If the product does not exist or is deleted.
        """
        async with self.uow.atomic():
            product = await self._get_product(product_id)

            existing = await self.repository.get_live_variant(product_id)
            if existing is not None:
                return EnsureVariantResult(variant=existing, created=False)

            variant_id = await self.repository.insert_default_variant(
                product_id,
                sku=default_variant_sku(product),
                name=f"{product.name} Variant",
            )
            if variant_id is None:
                # Lost the race; the other caller's variant is the answer.
                winner = await self.repository.get_live_variant(product_id)
                if winner is None:
                    raise NotFoundError("ProductVariant", f"default of product {product_id}")
                return EnsureVariantResult(variant=winner, created=False)

            variant = await self.repository.get_variant(variant_id)

        logger.info(
            "Default variant created",
            product_id=product_id,
            variant_id=variant_id,
            sku=variant.sku if variant else None,
        )
        return EnsureVariantResult(variant=variant, created=True)  # type: ignore[arg-type]

    async def soft_delete_variant(self, variant_id: int) -> ProductVariant:
        """Move a variant to the deleted lifecycle state.

        Raises:
            NotFoundError: Unknown or already deleted variant.
        """
        async with self.uow.atomic():
            variant = await self.repository.get_variant(variant_id)
            if variant is None:
                raise NotFoundError("ProductVariant", variant_id)
            before = variant.status
            validate_lifecycle_transition(
                "ProductVariant", variant_id, variant.lifecycle, Lifecycle.DELETED
            )
            variant.status = Lifecycle.DELETED.value
            await self.uow.session.flush()

        logger.info(
            "Variant soft-deleted",
            variant_id=variant_id,
            master_id=variant.master_id,
            before=before,
            after=variant.status,
        )
        return variant
