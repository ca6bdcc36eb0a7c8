"""Faceted aggregation for the storefront filter panel.

Counts, per characteristic group and per value, the distinct live
in-stock products carrying it. Groups nobody carries are dropped, the
remainder is nested under their sections.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

import structlog

from app.catalog.models import CharacteristicGroup, CharacteristicValue
from app.catalog.repository import FacetRepository, FacetRow
from app.infrastructure.config import settings

logger = structlog.get_logger()


@dataclass(frozen=True)
class FacetFilter:
    """Restricts the products facets are counted over."""

    category_id: int | None = None
    manufacturer_id: int | None = None


@dataclass
class FacetValue:
    """A value with its product count."""

    value_id: int
    value: str
    color_hex: str | None
    sort_order: int
    product_count: int

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "value_id": self.value_id,
            "value": self.value,
            "color_hex": self.color_hex,
            "sort_order": self.sort_order,
            "product_count": self.product_count,
        }


@dataclass
class FacetGroup:
    """A group with its values and distinct product count.

    ``values`` holds every active value of the group, including values
    no counted product carries (``product_count`` 0).
    """

    group_id: int
    name: str
    sort_order: int
    product_count: int
    description: str | None = None
    show_in_main_params: bool = False
    main_params_priority: int | None = None
    values: list[FacetValue] = field(default_factory=list)

    @property
    def values_count(self) -> int:
        """Number of values listed."""
        return len(self.values)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "group_id": self.group_id,
            "name": self.name,
            "sort_order": self.sort_order,
            "product_count": self.product_count,
            "description": self.description,
            "show_in_main_params": self.show_in_main_params,
            "main_params_priority": self.main_params_priority,
            "values_count": self.values_count,
            "values": [v.to_dict() for v in self.values],
        }


@dataclass
class FacetSection:
    """A section holding facet groups; ``section_id`` None is the synthetic one."""

    section_id: int | None
    section_name: str
    groups: list[FacetGroup] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "section_id": self.section_id,
            "section_name": self.section_name,
            "groups": [g.to_dict() for g in self.groups],
        }


@dataclass
class FacetResult:
    """Facet panel content."""

    sections: list[FacetSection] = field(default_factory=list)

    @property
    def groups(self) -> list[FacetGroup]:
        """All groups in display order."""
        return [group for section in self.sections for group in section.groups]

    @property
    def total_groups(self) -> int:
        """Number of groups shown."""
        return len(self.groups)

    @property
    def total_values(self) -> int:
        """Number of values shown."""
        return sum(len(group.values) for group in self.groups)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "sections": [s.to_dict() for s in self.sections],
            "total_groups": self.total_groups,
            "total_values": self.total_values,
        }


def build_facets(
    rows: Iterable[FacetRow],
    groups: Iterable[CharacteristicGroup],
    values: Iterable[CharacteristicValue],
    additional_section_name: str | None = None,
) -> FacetResult:
    """Aggregate facet rows into ordered sections.

    Args:
        rows: Distinct (group, value, product) facts.
        groups: The facet groups plus their parent groups.
        values: Active values of the groups referenced by ``rows``; values
            without rows are listed with a zero count.
        additional_section_name: Title of the section for groups without one.

    Returns:
        Facet result.
    """
    groups_by_id = {g.id: g for g in groups}
    values_by_group: dict[int, list[CharacteristicValue]] = {}
    for value in values:
        values_by_group.setdefault(value.group_id, []).append(value)

    products_per_group: dict[int, set[int]] = {}
    products_per_value: dict[int, set[int]] = {}
    for row in rows:
        products_per_group.setdefault(row.group_id, set()).add(row.product_id)
        products_per_value.setdefault(row.value_id, set()).add(row.product_id)

    facet_groups: list[FacetGroup] = []
    for group_id, products in products_per_group.items():
        group = groups_by_id.get(group_id)
        if group is None or not products:
            continue
        facet_values = []
        for value in values_by_group.get(group_id, []):
            facet_values.append(
                FacetValue(
                    value_id=value.id,
                    value=value.value,
                    color_hex=value.color_hex,
                    sort_order=value.sort_order or 0,
                    product_count=len(products_per_value.get(value.id, ())),
                )
            )
        facet_values.sort(key=lambda v: (v.sort_order, v.value, v.value_id))
        facet_groups.append(
            FacetGroup(
                group_id=group.id,
                name=group.name,
                sort_order=group.sort_order or 0,
                product_count=len(products),
                description=group.description,
                show_in_main_params=bool(group.show_in_main_params),
                main_params_priority=group.main_params_priority,
                values=facet_values,
            )
        )

    facet_groups.sort(key=lambda g: (-g.product_count, g.sort_order, g.name, g.group_id))

    # Sections appear in the order of their best-placed group.
    sections: dict[int | None, FacetSection] = {}
    for facet_group in facet_groups:
        group = groups_by_id[facet_group.group_id]
        parent = groups_by_id.get(group.parent_id) if group.parent_id is not None else None
        if parent is not None and parent.is_section and parent.is_active:
            key: int | None = parent.id
            name = parent.name
        else:
            key = None
            name = additional_section_name or settings.additional_section_name
        sections.setdefault(key, FacetSection(section_id=key, section_name=name))
        sections[key].groups.append(facet_group)

    ordered = [s for k, s in sections.items() if k is not None]
    if None in sections:
        ordered.append(sections[None])
    return FacetResult(sections=ordered)


class FacetEngine:
    """Loads facet input and aggregates it."""

    def __init__(self, repository: FacetRepository) -> None:
        """Initialize engine.

        Args:
            repository: Facet repository.
        """
        self.repository = repository

    async def get_facets(self, facet_filter: FacetFilter | None = None) -> FacetResult:
        """Compute facets for the filter panel.

        Args:
            facet_filter: Optional category/manufacturer restriction.

        Returns:
            Facet result without zero-count groups.
        """
        facet_filter = facet_filter or FacetFilter()
        rows = await self.repository.fetch_rows(
            category_id=facet_filter.category_id,
            manufacturer_id=facet_filter.manufacturer_id,
        )

        group_ids = {row.group_id for row in rows}
        groups = list(await self.repository.load_groups(group_ids))
        parent_ids = {g.parent_id for g in groups if g.parent_id is not None} - group_ids
        groups.extend(await self.repository.load_groups(parent_ids))
        values = await self.repository.load_active_values(group_ids)

        result = build_facets(rows, groups, values)
        logger.debug(
            "Facets computed",
            category_id=facet_filter.category_id,
            manufacturer_id=facet_filter.manufacturer_id,
            rows=len(rows),
            total_groups=result.total_groups,
        )
        return result
