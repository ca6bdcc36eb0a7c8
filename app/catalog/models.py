"""SQLAlchemy models for the characteristic catalog.

Defines products, variants, the self-referencing characteristic group
table (sections are groups without a parent), characteristic values,
EAV assignments and per-product configurable characteristic documents.
"""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.domain.state_machines import Lifecycle
from app.infrastructure.database import Base

JSONDocument = JSON().with_variant(JSONB(), "postgresql")


def utc_now() -> datetime:
    """Return current UTC time (timezone-aware)."""
    return datetime.now(timezone.utc)


class Product(Base):
    """Master product.

    Attributes:
        id: Product identifier.
        name: Display name.
        sku: Article number, unique.
        price_cents: Base price in minor units.
        discount_price_cents: Discounted price, None when there is no discount.
        stock_quantity: Units in stock.
        category_id: Catalog category reference.
        manufacturer_id: Manufacturer reference.
        base_attributes: Free-form attributes variants may override.
        status: Lifecycle state.
    """

    __tablename__ = "products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    sku: Mapped[str | None] = mapped_column(String(100), nullable=True, unique=True)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    discount_price_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)
    stock_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    category_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    manufacturer_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    base_attributes: Mapped[dict[str, Any]] = mapped_column(
        JSONDocument, nullable=False, default=dict
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=Lifecycle.ACTIVE.value, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    # Relationships
    variants: Mapped[list["ProductVariant"]] = relationship(
        "ProductVariant",
        back_populates="product",
        order_by="ProductVariant.id",
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<Product(id={self.id}, sku={self.sku}, name={self.name[:30]})>"

    @property
    def lifecycle(self) -> Lifecycle:
        """Lifecycle state as enum."""
        return Lifecycle(self.status)

    @property
    def is_deleted(self) -> bool:
        """Whether the product is soft-deleted."""
        return self.lifecycle.is_deleted

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "sku": self.sku,
            "price": self.price_cents,
            "discount_price": self.discount_price_cents,
            "stock_quantity": self.stock_quantity,
            "category_id": self.category_id,
            "manufacturer_id": self.manufacturer_id,
            "status": self.status,
            "is_deleted": self.is_deleted,
        }


class ProductVariant(Base):
    """Product variant with nullable overrides of master fields.

    A NULL override means "inherit from the master"; zero is a real
    override. The partial unique index allows only one live default
    variant per master, which makes ``ensure_variant`` race-safe.
    """

    __tablename__ = "product_variants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    master_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    sku: Mapped[str] = mapped_column(String(150), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    price_override_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)
    discount_price_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)
    stock_override: Mapped[int | None] = mapped_column(Integer, nullable=True)
    attributes: Mapped[dict[str, Any]] = mapped_column(
        JSONDocument, nullable=False, default=dict
    )
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=Lifecycle.ACTIVE.value, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    # Relationships
    product: Mapped["Product"] = relationship("Product", back_populates="variants")

    __table_args__ = (
        Index(
            "uq_product_variants_live_default",
            "master_id",
            unique=True,
            postgresql_where=text("is_default AND status <> 'deleted'"),
            sqlite_where=text("is_default AND status <> 'deleted'"),
        ),
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<ProductVariant(id={self.id}, sku={self.sku})>"

    @property
    def lifecycle(self) -> Lifecycle:
        """Lifecycle state as enum."""
        return Lifecycle(self.status)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        lifecycle = self.lifecycle
        return {
            "id": self.id,
            "master_id": self.master_id,
            "sku": self.sku,
            "name": self.name,
            "price_override": self.price_override_cents,
            "discount_price": self.discount_price_cents,
            "stock_override": self.stock_override,
            "attributes": dict(self.attributes or {}),
            "is_default": self.is_default,
            "status": self.status,
            "is_active": lifecycle.is_active,
            "is_deleted": lifecycle.is_deleted,
        }


class CharacteristicGroup(Base):
    """Characteristic group; a section when ``parent_id`` is NULL.

    The hierarchy is two levels deep by convention (section → group).
    Whether a row is a section is always derived from ``parent_id``.
    """

    __tablename__ = "characteristic_groups"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    parent_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("characteristic_groups.id"),
        nullable=True,
        index=True,
    )
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    show_in_main_params: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    main_params_priority: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<CharacteristicGroup(id={self.id}, name={self.name}, parent_id={self.parent_id})>"

    @property
    def is_section(self) -> bool:
        """Root-level groups are sections."""
        return self.parent_id is None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "parent_id": self.parent_id,
            "sort_order": self.sort_order,
            "is_active": self.is_active,
            "is_section": self.is_section,
            "show_in_main_params": self.show_in_main_params,
            "main_params_priority": self.main_params_priority,
        }


class CharacteristicValue(Base):
    """A selectable value owned by exactly one group."""

    __tablename__ = "characteristic_values"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    group_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("characteristic_groups.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    value: Mapped[str] = mapped_column(String(255), nullable=False)
    color_hex: Mapped[str | None] = mapped_column(String(7), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<CharacteristicValue(id={self.id}, group_id={self.group_id}, value={self.value})>"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "group_id": self.group_id,
            "value": self.value,
            "color_hex": self.color_hex,
            "description": self.description,
            "sort_order": self.sort_order,
            "is_active": self.is_active,
        }


class CharacteristicAssignment(Base):
    """EAV fact: a product or a variant carries a characteristic value."""

    __tablename__ = "characteristic_assignments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    variant_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("product_variants.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    value_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("characteristic_values.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    additional_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    __table_args__ = (
        CheckConstraint(
            "(product_id IS NULL) <> (variant_id IS NULL)",
            name="ck_characteristic_assignments_single_owner",
        ),
        UniqueConstraint("product_id", "value_id", name="uq_assignments_product_value"),
        UniqueConstraint("variant_id", "value_id", name="uq_assignments_variant_value"),
    )

    def __repr__(self) -> str:
        """String representation."""
        owner = f"product_id={self.product_id}" if self.product_id else f"variant_id={self.variant_id}"
        return f"<CharacteristicAssignment({owner}, value_id={self.value_id})>"


class ConfigurableCharacteristics(Base):
    """Per-product JSON array of configurable characteristic descriptors."""

    __tablename__ = "product_configurable_characteristics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    characteristic_data: Mapped[list[Any]] = mapped_column(
        JSONDocument, nullable=False, default=list
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )
