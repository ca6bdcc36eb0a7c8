"""Repositories for catalog database operations.

Each repository wraps one async session and exposes the queries the
catalog services need. Repositories never commit; transaction scope is
owned by the caller (see ``UnitOfWork``).
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any, Literal

from sqlalchemy import and_, delete, distinct, exists, func, or_, select, text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.catalog.models import (
    CharacteristicAssignment,
    CharacteristicGroup,
    CharacteristicValue,
    ConfigurableCharacteristics,
    Product,
    ProductVariant,
    utc_now,
)
from app.domain.exceptions import ConflictError
from app.domain.state_machines import Lifecycle

OwnerType = Literal["product", "variant"]

LIVE_DEFAULT_VARIANT = text("is_default AND status <> 'deleted'")


def dialect_insert(session: AsyncSession, table: Any) -> Any:
    """Build an INSERT supporting ON CONFLICT for the bound dialect.

    Args:
        session: Session whose bind decides the dialect.
        table: Mapped class or table.

    Returns:
        Dialect-specific insert construct.
    """
    if session.get_bind().dialect.name == "sqlite":
        return sqlite.insert(table)
    return postgresql.insert(table)


async def flush_or_conflict(session: AsyncSession, message: str) -> None:
    """Flush pending rows, translating unique violations.

    Args:
        session: Session to flush.
        message: Conflict message for the caller.

    Raises:
        ConflictError: If a unique constraint was violated.
    """
    try:
        await session.flush()
    except IntegrityError as exc:
        raise ConflictError(message, details={"reason": str(exc.orig)}) from exc


# ============================================================================
# Taxonomy
# ============================================================================


class TaxonomyRepository:
    """Repository for characteristic groups and values.

    Example usage:
        async with get_session() as session:
            repo = TaxonomyRepository(session)
            groups = await repo.list_active_groups()
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async SQLAlchemy session.
        """
        self.session = session

    async def get_group(self, group_id: int) -> CharacteristicGroup | None:
        """Get group by ID (active or not)."""
        return await self.session.get(CharacteristicGroup, group_id)

    async def get_value(self, value_id: int) -> CharacteristicValue | None:
        """Get value by ID (active or not)."""
        return await self.session.get(CharacteristicValue, value_id)

    async def list_active_groups(self) -> Sequence[CharacteristicGroup]:
        """List all active groups."""
        result = await self.session.execute(
            select(CharacteristicGroup)
            .where(CharacteristicGroup.is_active.is_(True))
            .order_by(CharacteristicGroup.sort_order, CharacteristicGroup.name, CharacteristicGroup.id)
        )
        return result.scalars().all()

    async def list_active_values(self) -> Sequence[CharacteristicValue]:
        """List active values that belong to active groups."""
        result = await self.session.execute(
            select(CharacteristicValue)
            .join(CharacteristicGroup, CharacteristicGroup.id == CharacteristicValue.group_id)
            .where(
                CharacteristicValue.is_active.is_(True),
                CharacteristicGroup.is_active.is_(True),
            )
            .order_by(CharacteristicValue.sort_order, CharacteristicValue.value, CharacteristicValue.id)
        )
        return result.scalars().all()

    async def list_group_values(self, group_id: int) -> Sequence[CharacteristicValue]:
        """List active values of one group ordered by sort_order, then text."""
        result = await self.session.execute(
            select(CharacteristicValue)
            .where(
                CharacteristicValue.group_id == group_id,
                CharacteristicValue.is_active.is_(True),
            )
            .order_by(CharacteristicValue.sort_order, CharacteristicValue.value, CharacteristicValue.id)
        )
        return result.scalars().all()

    async def list_parent_links(self) -> dict[int, int | None]:
        """Map every group ID to its parent ID."""
        result = await self.session.execute(
            select(CharacteristicGroup.id, CharacteristicGroup.parent_id)
        )
        return {row.id: row.parent_id for row in result.all()}

    async def list_children(self, parent_ids: Iterable[int]) -> Sequence[CharacteristicGroup]:
        """List direct children of the given groups, active or not."""
        ids = list(parent_ids)
        if not ids:
            return []
        result = await self.session.execute(
            select(CharacteristicGroup)
            .where(CharacteristicGroup.parent_id.in_(ids))
            .order_by(CharacteristicGroup.name, CharacteristicGroup.id)
        )
        return result.scalars().all()

    async def next_group_sort_order(self, parent_id: int | None) -> int:
        """Next sort_order among siblings sharing ``parent_id`` (NULL-safe)."""
        sibling_filter = (
            CharacteristicGroup.parent_id.is_(None)
            if parent_id is None
            else CharacteristicGroup.parent_id == parent_id
        )
        result = await self.session.execute(
            select(func.max(CharacteristicGroup.sort_order)).where(sibling_filter)
        )
        current = result.scalar_one_or_none()
        return 0 if current is None else current + 1

    async def next_value_sort_order(self, group_id: int) -> int:
        """Next sort_order within a group."""
        result = await self.session.execute(
            select(func.max(CharacteristicValue.sort_order)).where(
                CharacteristicValue.group_id == group_id
            )
        )
        current = result.scalar_one_or_none()
        return 0 if current is None else current + 1

    async def add_group(self, group: CharacteristicGroup) -> CharacteristicGroup:
        """Insert a group."""
        self.session.add(group)
        await flush_or_conflict(self.session, f"Characteristic group '{group.name}' already exists")
        return group

    async def add_value(self, value: CharacteristicValue) -> CharacteristicValue:
        """Insert a value."""
        self.session.add(value)
        await flush_or_conflict(self.session, f"Characteristic value '{value.value}' already exists")
        return value

    # ------------------------------------------------------------------
    # Cascade queries
    # ------------------------------------------------------------------

    async def count_values(self, group_ids: Iterable[int]) -> int:
        """Count values owned by any of the groups (active or not)."""
        ids = list(group_ids)
        if not ids:
            return 0
        result = await self.session.execute(
            select(func.count(CharacteristicValue.id)).where(CharacteristicValue.group_id.in_(ids))
        )
        return result.scalar_one()

    def _assignment_product_id(self) -> Any:
        """Product an assignment contributes to (variants map to their master)."""
        return func.coalesce(CharacteristicAssignment.product_id, ProductVariant.master_id)

    async def count_assignments(self, group_ids: Iterable[int]) -> tuple[int, int]:
        """Count assignments referencing values of the groups.

        Returns:
            Tuple of (assignment rows, distinct products).
        """
        ids = list(group_ids)
        if not ids:
            return 0, 0
        product_id = self._assignment_product_id()
        result = await self.session.execute(
            select(
                func.count(CharacteristicAssignment.id),
                func.count(distinct(product_id)),
            )
            .select_from(CharacteristicAssignment)
            .join(CharacteristicValue, CharacteristicValue.id == CharacteristicAssignment.value_id)
            .outerjoin(ProductVariant, ProductVariant.id == CharacteristicAssignment.variant_id)
            .where(CharacteristicValue.group_id.in_(ids))
        )
        row = result.one()
        return int(row[0]), int(row[1])

    async def sample_affected_products(
        self,
        group_ids: Iterable[int],
        limit: int,
    ) -> list[dict[str, Any]]:
        """First ``limit`` distinct affected products ordered by name."""
        ids = list(group_ids)
        if not ids:
            return []
        product_id = self._assignment_product_id()
        result = await self.session.execute(
            select(Product.id, Product.name)
            .distinct()
            .select_from(CharacteristicAssignment)
            .join(CharacteristicValue, CharacteristicValue.id == CharacteristicAssignment.value_id)
            .outerjoin(ProductVariant, ProductVariant.id == CharacteristicAssignment.variant_id)
            .join(Product, Product.id == product_id)
            .where(CharacteristicValue.group_id.in_(ids))
            .order_by(Product.name, Product.id)
            .limit(limit)
        )
        return [{"id": row.id, "name": row.name} for row in result.all()]

    async def delete_assignments_for_groups(self, group_ids: Iterable[int]) -> int:
        """Delete assignments referencing values of the groups."""
        ids = list(group_ids)
        value_ids = select(CharacteristicValue.id).where(CharacteristicValue.group_id.in_(ids))
        result = await self.session.execute(
            delete(CharacteristicAssignment).where(CharacteristicAssignment.value_id.in_(value_ids))
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0

    async def delete_values_for_groups(self, group_ids: Iterable[int]) -> int:
        """Delete all values of the groups."""
        ids = list(group_ids)
        result = await self.session.execute(
            delete(CharacteristicValue).where(CharacteristicValue.group_id.in_(ids))
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0

    async def delete_groups(self, group_ids: Iterable[int]) -> int:
        """Delete groups by ID."""
        ids = list(group_ids)
        result = await self.session.execute(
            delete(CharacteristicGroup).where(CharacteristicGroup.id.in_(ids))
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0

    async def delete_value(self, value_id: int) -> tuple[int, int]:
        """Delete one value and its assignments.

        Returns:
            Tuple of (assignments deleted, values deleted).
        """
        assignments = await self.session.execute(
            delete(CharacteristicAssignment).where(CharacteristicAssignment.value_id == value_id)
            .execution_options(synchronize_session="fetch")
        )
        values = await self.session.execute(
            delete(CharacteristicValue).where(CharacteristicValue.id == value_id)
            .execution_options(synchronize_session="fetch")
        )
        return assignments.rowcount or 0, values.rowcount or 0


# ============================================================================
# Products and variants
# ============================================================================


class ProductRepository:
    """Repository for products and their variants."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async SQLAlchemy session.
        """
        self.session = session

    async def save(self, product: Product) -> Product:
        """Save a product to database."""
        self.session.add(product)
        await flush_or_conflict(self.session, f"Product with SKU '{product.sku}' already exists")
        return product

    async def get_by_id(self, product_id: int, include_deleted: bool = False) -> Product | None:
        """Get product by ID.

        Args:
            product_id: Product ID.
            include_deleted: Whether soft-deleted products are returned.
        """
        query = select(Product).where(Product.id == product_id)
        if not include_deleted:
            query = query.where(Product.status != Lifecycle.DELETED.value)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_variant(self, variant_id: int, include_deleted: bool = False) -> ProductVariant | None:
        """Get variant by ID."""
        query = select(ProductVariant).where(ProductVariant.id == variant_id)
        if not include_deleted:
            query = query.where(ProductVariant.status != Lifecycle.DELETED.value)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def list_live_variants(self, product_id: int) -> Sequence[ProductVariant]:
        """List non-deleted variants of a product, newest first."""
        result = await self.session.execute(
            select(ProductVariant)
            .where(
                ProductVariant.master_id == product_id,
                ProductVariant.status != Lifecycle.DELETED.value,
            )
            .order_by(ProductVariant.created_at.desc(), ProductVariant.id.desc())
        )
        return result.scalars().all()

    async def get_live_variant(self, product_id: int) -> ProductVariant | None:
        """Get the first non-deleted variant of a product (oldest wins)."""
        result = await self.session.execute(
            select(ProductVariant)
            .where(
                ProductVariant.master_id == product_id,
                ProductVariant.status != Lifecycle.DELETED.value,
            )
            .order_by(ProductVariant.id)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def insert_default_variant(
        self,
        product_id: int,
        sku: str,
        name: str,
    ) -> int | None:
        """Insert a default variant unless a live default already exists.

        Uses ``ON CONFLICT DO NOTHING`` against the partial unique index
        on live default variants, so concurrent callers cannot create two.

        Returns:
            New variant ID, or None when another default already exists.
        """
        stmt = (
            dialect_insert(self.session, ProductVariant)
            .values(
                master_id=product_id,
                sku=sku,
                name=name,
                attributes={},
                is_default=True,
                status=Lifecycle.ACTIVE.value,
            )
            .on_conflict_do_nothing(
                index_elements=[ProductVariant.master_id],
                index_where=LIVE_DEFAULT_VARIANT,
            )
            .returning(ProductVariant.id)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def variant_existence(self, product_ids: Iterable[int]) -> dict[int, bool]:
        """Check which products have at least one active variant.

        Only an EXISTS test per product; variant rows are not loaded.
        """
        ids = list(product_ids)
        if not ids:
            return {}
        has_variant = exists().where(
            ProductVariant.master_id == Product.id,
            ProductVariant.status == Lifecycle.ACTIVE.value,
        )
        result = await self.session.execute(
            select(Product.id, has_variant.label("has_variants")).where(Product.id.in_(ids))
        )
        found = {row.id: bool(row.has_variants) for row in result.all()}
        return {product_id: found.get(product_id, False) for product_id in ids}


# ============================================================================
# Assignments (EAV)
# ============================================================================


@dataclass
class AssignmentRow:
    """An assignment joined with its value and group."""

    value_id: int
    value: str
    color_hex: str | None
    group_id: int
    group_name: str
    additional_value: str | None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "value_id": self.value_id,
            "value": self.value,
            "color_hex": self.color_hex,
            "group_id": self.group_id,
            "group_name": self.group_name,
            "additional_value": self.additional_value,
        }


class AssignmentRepository:
    """Repository for EAV assignments and configurable characteristics."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async SQLAlchemy session.
        """
        self.session = session

    @staticmethod
    def _owner_column(owner_type: OwnerType) -> Any:
        if owner_type == "variant":
            return CharacteristicAssignment.variant_id
        return CharacteristicAssignment.product_id

    async def list_for_owner(self, owner_type: OwnerType, owner_id: int) -> list[AssignmentRow]:
        """List assignments of a product or variant.

        Ordered by group sort_order, then value sort_order.
        """
        result = await self.session.execute(
            select(
                CharacteristicValue.id.label("value_id"),
                CharacteristicValue.value,
                CharacteristicValue.color_hex,
                CharacteristicGroup.id.label("group_id"),
                CharacteristicGroup.name.label("group_name"),
                CharacteristicAssignment.additional_value,
            )
            .join(CharacteristicValue, CharacteristicValue.id == CharacteristicAssignment.value_id)
            .join(CharacteristicGroup, CharacteristicGroup.id == CharacteristicValue.group_id)
            .where(self._owner_column(owner_type) == owner_id)
            .order_by(
                CharacteristicGroup.sort_order,
                CharacteristicGroup.name,
                CharacteristicValue.sort_order,
                CharacteristicValue.value,
            )
        )
        return [
            AssignmentRow(
                value_id=row.value_id,
                value=row.value,
                color_hex=row.color_hex,
                group_id=row.group_id,
                group_name=row.group_name,
                additional_value=row.additional_value,
            )
            for row in result.all()
        ]

    async def existing_value_ids(self, value_ids: Iterable[int]) -> set[int]:
        """Return which of the given value IDs exist."""
        ids = list(value_ids)
        if not ids:
            return set()
        result = await self.session.execute(
            select(CharacteristicValue.id).where(CharacteristicValue.id.in_(ids))
        )
        return set(result.scalars().all())

    async def replace_for_owner(
        self,
        owner_type: OwnerType,
        owner_id: int,
        items: Iterable[tuple[int, str | None]],
    ) -> int:
        """Replace the full assignment set of an owner.

        Args:
            owner_type: "product" or "variant".
            owner_id: Owner ID.
            items: (value_id, additional_value) pairs.

        Returns:
            Number of rows inserted.
        """
        await self.session.execute(
            delete(CharacteristicAssignment).where(self._owner_column(owner_type) == owner_id)
            .execution_options(synchronize_session="fetch")
        )
        rows = [
            CharacteristicAssignment(
                product_id=owner_id if owner_type == "product" else None,
                variant_id=owner_id if owner_type == "variant" else None,
                value_id=value_id,
                additional_value=additional_value,
            )
            for value_id, additional_value in items
        ]
        self.session.add_all(rows)
        await flush_or_conflict(self.session, "Duplicate characteristic assignment")
        return len(rows)

    async def get_configurable(self, product_id: int) -> ConfigurableCharacteristics | None:
        """Get the configurable characteristics row of a product."""
        result = await self.session.execute(
            select(ConfigurableCharacteristics).where(
                ConfigurableCharacteristics.product_id == product_id
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def upsert_configurable(self, product_id: int, document: list[Any]) -> None:
        """Insert or replace the whole document (``ON CONFLICT (product_id)``)."""
        stmt = dialect_insert(self.session, ConfigurableCharacteristics).values(
            product_id=product_id,
            characteristic_data=document,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[ConfigurableCharacteristics.product_id],
            set_={
                "characteristic_data": stmt.excluded.characteristic_data,
                "updated_at": utc_now(),
            },
        )
        await self.session.execute(stmt)


# ============================================================================
# Facets
# ============================================================================


@dataclass
class FacetRow:
    """One (group, value, product) fact behind the filter panel."""

    group_id: int
    value_id: int
    product_id: int


class FacetRepository:
    """Repository for facet aggregation input."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async SQLAlchemy session.
        """
        self.session = session

    async def fetch_rows(
        self,
        category_id: int | None = None,
        manufacturer_id: int | None = None,
    ) -> list[FacetRow]:
        """Fetch distinct (group, value, product) facts.

        Only active values of active groups, and only products that are
        not deleted and in stock. Variant assignments count toward the
        variant's master when the variant is not deleted.
        """
        product_id = func.coalesce(CharacteristicAssignment.product_id, ProductVariant.master_id)
        conditions = [
            CharacteristicGroup.is_active.is_(True),
            CharacteristicValue.is_active.is_(True),
            Product.status != Lifecycle.DELETED.value,
            Product.stock_quantity > 0,
            or_(
                CharacteristicAssignment.variant_id.is_(None),
                ProductVariant.status != Lifecycle.DELETED.value,
            ),
        ]
        if category_id is not None:
            conditions.append(Product.category_id == category_id)
        if manufacturer_id is not None:
            conditions.append(Product.manufacturer_id == manufacturer_id)

        result = await self.session.execute(
            select(
                CharacteristicValue.group_id,
                CharacteristicValue.id.label("value_id"),
                Product.id.label("product_id"),
            )
            .distinct()
            .select_from(CharacteristicAssignment)
            .join(CharacteristicValue, CharacteristicValue.id == CharacteristicAssignment.value_id)
            .join(CharacteristicGroup, CharacteristicGroup.id == CharacteristicValue.group_id)
            .outerjoin(ProductVariant, ProductVariant.id == CharacteristicAssignment.variant_id)
            .join(Product, Product.id == product_id)
            .where(and_(*conditions))
        )
        return [
            FacetRow(group_id=row.group_id, value_id=row.value_id, product_id=row.product_id)
            for row in result.all()
        ]

    async def load_groups(self, group_ids: Iterable[int]) -> Sequence[CharacteristicGroup]:
        """Load groups by ID."""
        ids = list(group_ids)
        if not ids:
            return []
        result = await self.session.execute(
            select(CharacteristicGroup).where(CharacteristicGroup.id.in_(ids))
        )
        return result.scalars().all()

    async def load_active_values(self, group_ids: Iterable[int]) -> Sequence[CharacteristicValue]:
        """Load every active value of the given groups."""
        ids = list(group_ids)
        if not ids:
            return []
        result = await self.session.execute(
            select(CharacteristicValue).where(
                CharacteristicValue.group_id.in_(ids),
                CharacteristicValue.is_active.is_(True),
            )
        )
        return result.scalars().all()
