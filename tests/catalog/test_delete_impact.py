"""Tests for delete impact calculation and cascade deletion."""

import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.catalog.models import CharacteristicAssignment, CharacteristicGroup, CharacteristicValue
from app.catalog.service import CatalogService
from app.domain.exceptions import ConflictError, NotFoundError, TaxonomyIntegrityError


async def count_rows(session: AsyncSession, model: type) -> int:
    """Count all rows of a table."""
    return await session.scalar(select(func.count()).select_from(model))


@pytest_asyncio.fixture
async def populated(factory) -> dict[str, int]:
    """Section with two child groups, values and assignments on products and a variant."""
    section = await factory.group("Dimensions")
    width = await factory.group("Width", parent=section)
    color = await factory.group("Color", parent=section)

    section_value = await factory.value(section, "Standard")
    narrow = await factory.value(width, "40 cm")
    wide = await factory.value(width, "50 cm")
    black = await factory.value(color, "Black")

    bravo = await factory.product(name="Bravo")
    alpha = await factory.product(name="Alpha")
    charlie = await factory.product(name="Charlie")
    charlie_variant = await factory.variant(charlie)

    await factory.assign(narrow, product=bravo)
    await factory.assign(narrow, product=alpha)
    await factory.assign(black, product=alpha)
    await factory.assign(wide, variant=charlie_variant)

    return {
        "section": section.id,
        "width": width.id,
        "color": color.id,
        "section_value": section_value.id,
        "narrow": narrow.id,
    }


class TestComputeDeleteImpact:
    """Tests for compute_delete_impact."""

    @pytest.mark.asyncio
    async def test_counts_for_section(self, service: CatalogService, populated: dict[str, int]) -> None:
        """Impact covers the section, its child groups, values and assignments."""
        impact = await service.get_delete_impact(populated["section"])

        assert impact.group.name == "Dimensions"
        assert impact.group.is_section is True
        assert {g.name for g in impact.child_groups} == {"Width", "Color"}
        assert impact.values_in_group == 1
        assert impact.values_in_child_groups == 3
        assert impact.total_values == 4
        assert sorted(impact.all_group_ids) == sorted(
            [populated["section"], populated["width"], populated["color"]]
        )
        assert impact.assignments_affected == 4
        assert impact.affected_products == 3
        assert [p["name"] for p in impact.affected_products_sample] == ["Alpha", "Bravo", "Charlie"]
        assert len(impact.warnings) == 3

    @pytest.mark.asyncio
    async def test_leaf_group_without_usage_has_no_warnings(
        self, service: CatalogService, factory
    ) -> None:
        """An empty group produces an empty report."""
        group = await factory.group("Unused")

        impact = await service.get_delete_impact(group.id)

        assert impact.child_groups == []
        assert impact.total_values == 0
        assert impact.assignments_affected == 0
        assert impact.warnings == []

    @pytest.mark.asyncio
    async def test_repeatable_and_read_only(
        self, service: CatalogService, session: AsyncSession, populated: dict[str, int]
    ) -> None:
        """Running twice gives the same report and changes nothing."""
        assignments_before = await count_rows(session, CharacteristicAssignment)

        first = await service.get_delete_impact(populated["section"])
        second = await service.get_delete_impact(populated["section"])

        assert first.to_dict() == second.to_dict()
        assert await count_rows(session, CharacteristicAssignment) == assignments_before

    @pytest.mark.asyncio
    async def test_sample_is_limited(self, service: CatalogService, factory) -> None:
        """At most the configured number of products is sampled."""
        group = await factory.group("Size")
        value = await factory.value(group, "M")
        for i in range(12):
            product = await factory.product(name=f"Product {i:02d}")
            await factory.assign(value, product=product)

        impact = await service.get_delete_impact(group.id)

        assert impact.affected_products == 12
        assert len(impact.affected_products_sample) == 10
        assert impact.affected_products_sample[0]["name"] == "Product 00"

    @pytest.mark.asyncio
    async def test_unknown_group(self, service: CatalogService) -> None:
        """Unknown group is reported as not found."""
        with pytest.raises(NotFoundError):
            await service.get_delete_impact(424242)

    @pytest.mark.asyncio
    async def test_cycle_detected(
        self, service: CatalogService, session: AsyncSession, factory
    ) -> None:
        """A parent cycle stops the walk with an integrity error."""
        first = await factory.group("First")
        second = await factory.group("Second", parent=first)
        first.parent_id = second.id
        await session.commit()

        with pytest.raises(TaxonomyIntegrityError):
            await service.get_delete_impact(first.id)


class TestDeleteGroup:
    """Tests for delete_group."""

    @pytest.mark.asyncio
    async def test_refuses_group_with_children(
        self, service: CatalogService, populated: dict[str, int]
    ) -> None:
        """Without force a group with children is refused."""
        with pytest.raises(ConflictError) as exc_info:
            await service.delete_group(populated["section"])
        assert exc_info.value.code == "HAS_CHILDREN"

    @pytest.mark.asyncio
    async def test_refuses_group_with_assignments(
        self, service: CatalogService, populated: dict[str, int]
    ) -> None:
        """Without force a group whose values are assigned is refused."""
        with pytest.raises(ConflictError) as exc_info:
            await service.delete_group(populated["width"])
        assert exc_info.value.code == "HAS_ASSIGNMENTS"

    @pytest.mark.asyncio
    async def test_deletes_unused_group_without_force(
        self, service: CatalogService, session: AsyncSession, factory
    ) -> None:
        """An unused group with values is deleted without force."""
        group = await factory.group("Unused")
        await factory.value(group, "a")
        group_id = group.id

        result = await service.delete_group(group_id)

        assert result.groups_deleted == 1
        assert result.values_deleted == 1
        assert await count_rows(session, CharacteristicGroup) == 0

    @pytest.mark.asyncio
    async def test_force_cascade_leaves_no_orphans(
        self, service: CatalogService, session: AsyncSession, populated: dict[str, int]
    ) -> None:
        """Forced delete removes children, values and every referencing assignment."""
        result = await service.delete_group(populated["section"], force=True)

        assert result.forced is True
        assert result.groups_deleted == 3
        assert result.values_deleted == 4
        assert result.assignments_deleted == 4
        assert await count_rows(session, CharacteristicGroup) == 0
        assert await count_rows(session, CharacteristicValue) == 0
        assert await count_rows(session, CharacteristicAssignment) == 0

    @pytest.mark.asyncio
    async def test_force_delete_of_child_keeps_siblings(
        self, service: CatalogService, session: AsyncSession, populated: dict[str, int]
    ) -> None:
        """Deleting one group leaves its section and sibling intact."""
        await service.delete_group(populated["width"], force=True)

        remaining = await session.scalars(select(CharacteristicGroup.name))
        assert sorted(remaining.all()) == ["Color", "Dimensions"]
        assert await count_rows(session, CharacteristicAssignment) == 1

    @pytest.mark.asyncio
    async def test_failure_rolls_back_everything(
        self,
        service: CatalogService,
        session: AsyncSession,
        populated: dict[str, int],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """A failure after assignments and values were deleted undoes the whole delete."""

        async def broken_delete_groups(group_ids) -> int:
            raise RuntimeError("connection lost")

        monkeypatch.setattr(service.taxonomy, "delete_groups", broken_delete_groups)

        with pytest.raises(RuntimeError):
            await service.delete_group(populated["section"], force=True)

        assert await count_rows(session, CharacteristicGroup) == 3
        assert await count_rows(session, CharacteristicValue) == 4
        assert await count_rows(session, CharacteristicAssignment) == 4

    @pytest.mark.asyncio
    async def test_unknown_group(self, service: CatalogService) -> None:
        """Deleting an unknown group is reported as not found."""
        with pytest.raises(NotFoundError):
            await service.delete_group(424242, force=True)
