"""EAV assignment store and configurable characteristics."""

from dataclasses import dataclass
from typing import Any

import structlog

from app.catalog.repository import (
    AssignmentRepository,
    AssignmentRow,
    OwnerType,
    ProductRepository,
    TaxonomyRepository,
)
from app.catalog.taxonomy import Section, build_sections
from app.domain.exceptions import NotFoundError, ValidationError
from app.infrastructure.database import UnitOfWork

logger = structlog.get_logger()

OWNER_TYPES: tuple[OwnerType, ...] = ("product", "variant")


@dataclass(frozen=True)
class AssignmentInput:
    """One desired assignment in a full-replace request."""

    value_id: int
    additional_value: str | None = None


@dataclass
class GroupedCharacteristics:
    """Product editor view: all sections with the product's values flagged."""

    product_id: int
    sections: list[Section]
    assignments: list[AssignmentRow]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "product_id": self.product_id,
            "sections": [s.to_dict() for s in self.sections],
            "assignments": [a.to_dict() for a in self.assignments],
        }


class AssignmentService:
    """Reads and replaces characteristic assignments of products and variants.

    Assignment sets are replaced wholesale; there is no partial patch and
    no inheritance from a product to its variants.
    """

    def __init__(
        self,
        assignments: AssignmentRepository,
        products: ProductRepository,
        taxonomy: TaxonomyRepository,
        uow: UnitOfWork,
    ) -> None:
        """Initialize service.

        Args:
            assignments: Assignment repository.
            products: Product repository, used for owner checks.
            taxonomy: Taxonomy repository, used for the sections view.
            uow: Transaction scope for mutations.
        """
        self.assignments = assignments
        self.products = products
        self.taxonomy = taxonomy
        self.uow = uow

    async def _require_owner(self, owner_type: str, owner_id: int) -> None:
        if owner_type not in OWNER_TYPES:
            raise ValidationError(
                f"Unknown owner type '{owner_type}'", field="owner_type", allowed=list(OWNER_TYPES)
            )
        if owner_type == "variant":
            if await self.products.get_variant(owner_id) is None:
                raise NotFoundError("ProductVariant", owner_id)
        elif await self.products.get_by_id(owner_id) is None:
            raise NotFoundError("Product", owner_id)

    async def get_assignments(self, owner_type: OwnerType, owner_id: int) -> list[AssignmentRow]:
        """List assignments of a product or variant.

        Raises:
            NotFoundError: Unknown owner.
        """
        await self._require_owner(owner_type, owner_id)
        return await self.assignments.list_for_owner(owner_type, owner_id)

    async def set_assignments(
        self,
        owner_type: OwnerType,
        owner_id: int,
        items: list[AssignmentInput],
    ) -> list[AssignmentRow]:
        """Replace the complete assignment set of an owner.

        Args:
            owner_type: "product" or "variant".
            owner_id: Owner ID.
            items: Complete desired set.

        Returns:
            Assignments after the replace.

        Raises:
            ValidationError: Duplicate or unknown value IDs.
            NotFoundError: Unknown owner.
        """
        value_ids = [item.value_id for item in items]
        duplicates = sorted({v for v in value_ids if value_ids.count(v) > 1})
        if duplicates:
            raise ValidationError(
                "Duplicate value IDs in assignment set", field="values", value_ids=duplicates
            )

        async with self.uow.atomic():
            await self._require_owner(owner_type, owner_id)

            existing = await self.assignments.existing_value_ids(value_ids)
            unknown = sorted(set(value_ids) - existing)
            if unknown:
                raise ValidationError(
                    "Unknown characteristic value IDs", field="values", value_ids=unknown
                )

            before = await self.assignments.list_for_owner(owner_type, owner_id)
            await self.assignments.replace_for_owner(
                owner_type,
                owner_id,
                [(item.value_id, item.additional_value) for item in items],
            )
            after = await self.assignments.list_for_owner(owner_type, owner_id)

        logger.info(
            "Assignments replaced",
            owner_type=owner_type,
            owner_id=owner_id,
            before=[a.value_id for a in before],
            after=[a.value_id for a in after],
        )
        return after

    async def get_configurable(self, product_id: int) -> list[Any]:
        """Get the configurable characteristics document of a product.

        Returns:
            The stored array, or an empty list when there is none.
        """
        if await self.products.get_by_id(product_id) is None:
            raise NotFoundError("Product", product_id)

        row = await self.assignments.get_configurable(product_id)
        if row is None:
            return []
        if not isinstance(row.characteristic_data, list):
            logger.warning(
                "Stored configurable characteristics are not an array",
                product_id=product_id,
                stored_type=type(row.characteristic_data).__name__,
            )
            return []
        return row.characteristic_data

    async def set_configurable(self, product_id: int, document: Any) -> list[Any]:
        """Replace the configurable characteristics document of a product.

        Raises:
            ValidationError: If the document is not an array.
            NotFoundError: Unknown product.
        """
        if not isinstance(document, list):
            raise ValidationError(
                "Configurable characteristics must be an array",
                field="characteristics",
                received_type=type(document).__name__,
            )

        async with self.uow.atomic():
            if await self.products.get_by_id(product_id) is None:
                raise NotFoundError("Product", product_id)
            await self.assignments.upsert_configurable(product_id, document)

        logger.info("Configurable characteristics saved", product_id=product_id, items=len(document))
        return document

    async def get_grouped_characteristics(self, product_id: int) -> GroupedCharacteristics:
        """Build the editor view of a product's characteristics."""
        assignments = await self.get_assignments("product", product_id)
        selected = {a.value_id for a in assignments}
        sections = build_sections(
            await self.taxonomy.list_active_groups(),
            await self.taxonomy.list_active_values(),
            selected_value_ids=selected,
        )
        return GroupedCharacteristics(
            product_id=product_id,
            sections=sections,
            assignments=assignments,
        )
