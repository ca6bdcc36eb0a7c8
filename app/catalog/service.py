"""Catalog service facade.

High-level service that combines the taxonomy store, delete impact
calculator, variant resolver, assignment store and facet engine behind
one object bound to a database session.
"""

import re
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.catalog.assignments import AssignmentInput, AssignmentService, GroupedCharacteristics
from app.catalog.facets import FacetEngine, FacetFilter, FacetResult
from app.catalog.impact import DeleteImpact, DeleteImpactCalculator, DeleteResult
from app.catalog.models import CharacteristicGroup, CharacteristicValue, ProductVariant
from app.catalog.repository import (
    AssignmentRepository,
    AssignmentRow,
    FacetRepository,
    OwnerType,
    ProductRepository,
    TaxonomyRepository,
)
from app.catalog.taxonomy import (
    Section,
    TaxonomyNode,
    TaxonomyTreeBuilder,
    build_sections,
    flatten_tree,
)
from app.catalog.variants import EffectiveValues, EnsureVariantResult, VariantService
from app.domain.exceptions import NotFoundError, TaxonomyIntegrityError, ValidationError
from app.infrastructure.config import settings
from app.infrastructure.database import UnitOfWork, retry_transient

logger = structlog.get_logger()

COLOR_HEX_PATTERN = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")

GROUP_FIELDS = {
    "name",
    "description",
    "parent_id",
    "sort_order",
    "is_active",
    "show_in_main_params",
    "main_params_priority",
}
VALUE_FIELDS = {"value", "color_hex", "description", "sort_order", "is_active"}
REQUIRED_GROUP_FIELDS = {"name", "sort_order", "is_active", "show_in_main_params"}
REQUIRED_VALUE_FIELDS = {"value", "sort_order", "is_active"}


def _reject_nulls(changes: dict[str, Any], required: set[str]) -> None:
    """Refuse null for columns that must always hold a value."""
    for key in sorted(required & set(changes)):
        if changes[key] is None:
            raise ValidationError(f"{key} must not be null", field=key)


def _require_text(value: str | None, field: str) -> str:
    """Strip a required text field, rejecting blanks."""
    text = (value or "").strip()
    if not text:
        raise ValidationError(f"{field} must not be blank", field=field)
    return text


def _validate_color(color_hex: str | None) -> str | None:
    if color_hex is None or color_hex == "":
        return None
    if not COLOR_HEX_PATTERN.match(color_hex):
        raise ValidationError(
            "color_hex must look like #RGB or #RRGGBB", field="color_hex", value=color_hex
        )
    return color_hex


class CatalogService:
    """Service for characteristic catalog operations.

    Example usage:
        async with async_session_factory() as session:
            service = CatalogService(session)
            tree = await service.list_tree()
            impact = await service.get_delete_impact(group_id)
            await service.delete_group(group_id, force=True)
            await session.commit()
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize service with database session.

        Args:
            session: Async SQLAlchemy session.
        """
        self.session = session
        self.uow = UnitOfWork(session)
        self.taxonomy = TaxonomyRepository(session)
        self.products = ProductRepository(session)
        self.tree_builder = TaxonomyTreeBuilder()
        self.impact = DeleteImpactCalculator(self.taxonomy, self.uow)
        self.variants = VariantService(self.products, self.uow)
        self.assignments = AssignmentService(
            AssignmentRepository(session), self.products, self.taxonomy, self.uow
        )
        self.facets = FacetEngine(FacetRepository(session))

    # ========================================================================
    # Taxonomy reads
    # ========================================================================

    @retry_transient
    async def list_tree(self) -> list[TaxonomyNode]:
        """Build the active taxonomy tree."""
        groups = await self.taxonomy.list_active_groups()
        values = await self.taxonomy.list_active_values()
        return self.tree_builder.build(groups, values)

    @retry_transient
    async def list_tree_flat(self) -> list[TaxonomyNode]:
        """The taxonomy tree as a pre-order list."""
        groups = await self.taxonomy.list_active_groups()
        values = await self.taxonomy.list_active_values()
        return flatten_tree(self.tree_builder.build(groups, values))

    @retry_transient
    async def get_sections(self) -> list[Section]:
        """Sections with their direct child groups."""
        return build_sections(
            await self.taxonomy.list_active_groups(),
            await self.taxonomy.list_active_values(),
        )

    @retry_transient
    async def get_group_values(self, group_id: int) -> list[CharacteristicValue]:
        """Active values of a group ordered by sort_order, then text.

        Raises:
            NotFoundError: Unknown group.
        """
        if await self.taxonomy.get_group(group_id) is None:
            raise NotFoundError("CharacteristicGroup", group_id)
        return list(await self.taxonomy.list_group_values(group_id))

    # ========================================================================
    # Taxonomy mutations
    # ========================================================================

    async def _require_section_parent(self, parent_id: int) -> CharacteristicGroup:
        parent = await self.taxonomy.get_group(parent_id)
        if parent is None:
            raise NotFoundError("CharacteristicGroup", parent_id)
        if not parent.is_section:
            raise ValidationError(
                f"Parent group {parent_id} is not a section; groups nest only one level deep",
                field="parent_id",
            )
        return parent

    async def create_group(
        self,
        name: str,
        parent_id: int | None = None,
        description: str | None = None,
        sort_order: int | None = None,
        show_in_main_params: bool = False,
        main_params_priority: int | None = None,
    ) -> CharacteristicGroup:
        """Create a section (no parent) or a group under a section.

        ``sort_order`` defaults to one past the largest among siblings.

        Raises:
            ValidationError: Blank name or a parent that is not a section.
            NotFoundError: Unknown parent.
        """
        name = _require_text(name, "name")

        async with self.uow.atomic():
            if parent_id is not None:
                await self._require_section_parent(parent_id)
            if sort_order is None:
                sort_order = await self.taxonomy.next_group_sort_order(parent_id)

            group = await self.taxonomy.add_group(
                CharacteristicGroup(
                    name=name,
                    parent_id=parent_id,
                    description=description,
                    sort_order=sort_order,
                    is_active=True,
                    show_in_main_params=show_in_main_params,
                    main_params_priority=main_params_priority,
                )
            )

        logger.info("Characteristic group created", group_id=group.id, after=group.to_dict())
        return group

    async def _check_move(self, group: CharacteristicGroup, new_parent_id: int | None) -> None:
        """Validate re-parenting a group."""
        if new_parent_id is None:
            return
        if new_parent_id == group.id:
            raise ValidationError("A group cannot be its own parent", field="parent_id")

        await self._require_section_parent(new_parent_id)

        # Walk the new parent's ancestors; reaching the moved group means a cycle.
        links = await self.taxonomy.list_parent_links()
        seen: set[int] = set()
        current: int | None = new_parent_id
        while current is not None:
            if current == group.id:
                raise ValidationError(
                    "Moving the group there would make it its own ancestor", field="parent_id"
                )
            if current in seen or len(seen) > settings.taxonomy_max_depth:
                raise TaxonomyIntegrityError("parent cycle detected", sorted(seen))
            seen.add(current)
            current = links.get(current)

        if await self.taxonomy.list_children([group.id]):
            raise ValidationError(
                "A section with child groups cannot be moved under another section",
                field="parent_id",
            )

    async def update_group(self, group_id: int, changes: dict[str, Any]) -> CharacteristicGroup:
        """Update group fields, including moving it to another section.

        Args:
            group_id: Group to update.
            changes: Field name to new value; only known fields are accepted.

        Raises:
            ValidationError: Unknown field, blank name, invalid move.
            NotFoundError: Unknown group or parent.
        """
        unknown = sorted(set(changes) - GROUP_FIELDS)
        if unknown:
            raise ValidationError("Unknown group fields", field="changes", fields=unknown)
        _reject_nulls(changes, REQUIRED_GROUP_FIELDS)
        if "name" in changes:
            changes = {**changes, "name": _require_text(changes["name"], "name")}

        async with self.uow.atomic():
            group = await self.taxonomy.get_group(group_id)
            if group is None:
                raise NotFoundError("CharacteristicGroup", group_id)
            before = group.to_dict()

            if "parent_id" in changes and changes["parent_id"] != group.parent_id:
                await self._check_move(group, changes["parent_id"])

            for key, value in changes.items():
                setattr(group, key, value)
            await self.session.flush()

        logger.info(
            "Characteristic group updated", group_id=group_id, before=before, after=group.to_dict()
        )
        return group

    async def create_value(
        self,
        group_id: int,
        value: str,
        color_hex: str | None = None,
        sort_order: int | None = None,
        description: str | None = None,
    ) -> CharacteristicValue:
        """Create a value in a group.

        Raises:
            ValidationError: Blank value or malformed color.
            NotFoundError: Unknown group.
        """
        value = _require_text(value, "value")
        color_hex = _validate_color(color_hex)

        async with self.uow.atomic():
            if await self.taxonomy.get_group(group_id) is None:
                raise NotFoundError("CharacteristicGroup", group_id)
            if sort_order is None:
                sort_order = await self.taxonomy.next_value_sort_order(group_id)

            created = await self.taxonomy.add_value(
                CharacteristicValue(
                    group_id=group_id,
                    value=value,
                    color_hex=color_hex,
                    description=description,
                    sort_order=sort_order,
                    is_active=True,
                )
            )

        logger.info("Characteristic value created", value_id=created.id, after=created.to_dict())
        return created

    async def update_value(self, value_id: int, changes: dict[str, Any]) -> CharacteristicValue:
        """Update value fields.

        Raises:
            ValidationError: Unknown field, blank value or malformed color.
            NotFoundError: Unknown value.
        """
        unknown = sorted(set(changes) - VALUE_FIELDS)
        if unknown:
            raise ValidationError("Unknown value fields", field="changes", fields=unknown)
        _reject_nulls(changes, REQUIRED_VALUE_FIELDS)
        if "value" in changes:
            changes = {**changes, "value": _require_text(changes["value"], "value")}
        if "color_hex" in changes:
            changes = {**changes, "color_hex": _validate_color(changes["color_hex"])}

        async with self.uow.atomic():
            value = await self.taxonomy.get_value(value_id)
            if value is None:
                raise NotFoundError("CharacteristicValue", value_id)
            before = value.to_dict()
            for key, new in changes.items():
                setattr(value, key, new)
            await self.session.flush()

        logger.info(
            "Characteristic value updated", value_id=value_id, before=before, after=value.to_dict()
        )
        return value

    async def delete_value(self, value_id: int) -> dict[str, Any]:
        """Delete a value and every assignment of it.

        Raises:
            NotFoundError: Unknown value.
        """
        async with self.uow.atomic():
            value = await self.taxonomy.get_value(value_id)
            if value is None:
                raise NotFoundError("CharacteristicValue", value_id)
            before = value.to_dict()
            assignments_deleted, _ = await self.taxonomy.delete_value(value_id)

        logger.info(
            "Characteristic value deleted",
            value_id=value_id,
            before=before,
            assignments_deleted=assignments_deleted,
        )
        return {"value_id": value_id, "assignments_deleted": assignments_deleted}

    # ========================================================================
    # Cascade delete
    # ========================================================================

    @retry_transient
    async def get_delete_impact(self, group_id: int) -> DeleteImpact:
        """Preview what deleting a group would destroy."""
        return await self.impact.compute_delete_impact(group_id)

    async def delete_group(self, group_id: int, force: bool = False) -> DeleteResult:
        """Delete a group; cascades through children and values when forced."""
        return await self.impact.delete_group(group_id, force=force)

    # ========================================================================
    # Variants
    # ========================================================================

    @retry_transient
    async def resolve_effective(
        self, product_id: int, variant_id: int | None = None
    ) -> EffectiveValues:
        """Effective price, stock and attributes of a product or one of its variants."""
        return await self.variants.resolve(product_id, variant_id)

    @retry_transient
    async def has_variants(self, product_ids: list[int]) -> dict[int, bool]:
        """Which products have at least one active variant."""
        return await self.variants.has_variants(product_ids)

    @retry_transient
    async def list_variants(self, product_id: int) -> list[ProductVariant]:
        """Live variants of a product, newest first."""
        return await self.variants.list_variants(product_id)

    async def ensure_variant(self, product_id: int) -> EnsureVariantResult:
        """Get or create the product's default variant."""
        return await self.variants.ensure_variant(product_id)

    async def soft_delete_variant(self, variant_id: int) -> ProductVariant:
        """Soft-delete a variant."""
        return await self.variants.soft_delete_variant(variant_id)

    # ========================================================================
    # Assignments
    # ========================================================================

    @retry_transient
    async def get_assignments(self, owner_type: OwnerType, owner_id: int) -> list[AssignmentRow]:
        """Assignments of a product or variant."""
        return await self.assignments.get_assignments(owner_type, owner_id)

    async def set_assignments(
        self,
        owner_type: OwnerType,
        owner_id: int,
        items: list[AssignmentInput],
    ) -> list[AssignmentRow]:
        """Replace the assignment set of a product or variant."""
        return await self.assignments.set_assignments(owner_type, owner_id, items)

    @retry_transient
    async def get_configurable(self, product_id: int) -> list[Any]:
        """Configurable characteristics document of a product."""
        return await self.assignments.get_configurable(product_id)

    async def set_configurable(self, product_id: int, document: Any) -> list[Any]:
        """Replace the configurable characteristics document of a product."""
        return await self.assignments.set_configurable(product_id, document)

    @retry_transient
    async def get_grouped_characteristics(self, product_id: int) -> GroupedCharacteristics:
        """Editor view of a product's characteristics."""
        return await self.assignments.get_grouped_characteristics(product_id)

    # ========================================================================
    # Facets
    # ========================================================================

    @retry_transient
    async def get_facets(self, facet_filter: FacetFilter | None = None) -> FacetResult:
        """Filter panel facets over live, in-stock products."""
        return await self.facets.get_facets(facet_filter)
