"""Characteristic taxonomy tree construction.

The taxonomy lives in one self-referencing group table. Root groups
(``parent_id IS NULL``) are sections, their children are characteristic
groups, and values hang off groups:

    Dimensions                      (section, level 0)
      Dimensions → Width            (group, level 1)
        120 mm, 140 mm              (values)

This module turns flat group/value rows into an ordered tree and into
the "sections" view used by editors. It performs no I/O, so the same
rows always produce the same tree.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

import structlog

from app.catalog.models import CharacteristicGroup, CharacteristicValue
from app.domain.exceptions import TaxonomyIntegrityError
from app.infrastructure.config import settings

logger = structlog.get_logger()


@dataclass
class TaxonomyValue:
    """A characteristic value as shown in the tree.

    Attributes:
        id: Value ID.
        group_id: Owning group.
        value: Display text.
        color_hex: Optional swatch color.
        sort_order: Position within the group.
        is_selected: Whether the product being edited carries this value.
    """

    id: int
    group_id: int
    value: str
    color_hex: str | None = None
    sort_order: int = 0
    is_selected: bool = False

    @classmethod
    def from_model(cls, model: CharacteristicValue, is_selected: bool = False) -> "TaxonomyValue":
        """Build from an ORM row."""
        return cls(
            id=model.id,
            group_id=model.group_id,
            value=model.value,
            color_hex=model.color_hex,
            sort_order=model.sort_order or 0,
            is_selected=is_selected,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "group_id": self.group_id,
            "value": self.value,
            "color_hex": self.color_hex,
            "sort_order": self.sort_order,
            "is_selected": self.is_selected,
        }


@dataclass
class TaxonomyNode:
    """A group in the taxonomy tree.

    Attributes:
        id: Group ID.
        name: Group name.
        parent_id: Parent group ID as stored (None for sections).
        level: Depth in the traversal (0 = root).
        full_path: Ancestor names joined with the path separator.
        display_name: Name indented by level, for flat select lists.
        sort_order: Position among siblings.
        description: Optional description.
        values: Active values of the group.
        children: Child groups in traversal order.
    """

    id: int
    name: str
    parent_id: int | None
    level: int
    full_path: str
    display_name: str
    sort_order: int = 0
    description: str | None = None
    values: list[TaxonomyValue] = field(default_factory=list)
    children: list["TaxonomyNode"] = field(default_factory=list, repr=False)

    @property
    def is_section(self) -> bool:
        """Sections are groups stored without a parent."""
        return self.parent_id is None

    @property
    def path_parts(self) -> list[str]:
        """Get list of path components from root to this group."""
        return self.full_path.split(settings.taxonomy_path_separator)

    def to_dict(self, include_children: bool = True) -> dict[str, Any]:
        """Convert to dictionary.

        Args:
            include_children: Whether to nest child nodes.
        """
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "parent_id": self.parent_id,
            "level": self.level,
            "full_path": self.full_path,
            "display_name": self.display_name,
            "is_section": self.is_section,
            "sort_order": self.sort_order,
            "description": self.description,
            "values": [v.to_dict() for v in self.values],
        }
        if include_children:
            data["children"] = [c.to_dict() for c in self.children]
        return data


@dataclass
class SectionGroup:
    """A group inside a section of the editor view."""

    group_id: int
    group_name: str
    sort_order: int
    values: list[TaxonomyValue] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "group_id": self.group_id,
            "group_name": self.group_name,
            "sort_order": self.sort_order,
            "values": [v.to_dict() for v in self.values],
        }


@dataclass
class Section:
    """A section with its direct child groups.

    ``section_id`` is None for the synthetic section collecting groups
    that do not sit under an active section.
    """

    section_id: int | None
    section_name: str
    sort_order: int
    description: str | None = None
    groups: list[SectionGroup] = field(default_factory=list)

    @property
    def is_real_section(self) -> bool:
        """Whether the section exists in the group table."""
        return self.section_id is not None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "section_id": self.section_id,
            "section_name": self.section_name,
            "sort_order": self.sort_order,
            "description": self.description or "",
            "is_real_section": self.is_real_section,
            "groups": [g.to_dict() for g in self.groups],
        }


def sibling_key(group: CharacteristicGroup) -> tuple[int, str, int]:
    """Ordering of siblings: sort_order, then name, then id."""
    return (group.sort_order or 0, group.name, group.id)


def value_key(value: CharacteristicValue) -> tuple[int, str, int]:
    """Ordering of values within a group: sort_order, then text."""
    return (value.sort_order or 0, value.value, value.id)


def group_values(
    values: Iterable[CharacteristicValue],
    selected_value_ids: set[int] | None = None,
) -> dict[int, list[TaxonomyValue]]:
    """Bucket values by group in display order.

    Args:
        values: Value rows.
        selected_value_ids: Values to flag as selected.

    Returns:
        Mapping of group ID to ordered values.
    """
    selected = selected_value_ids or set()
    by_group: dict[int, list[CharacteristicValue]] = {}
    for value in values:
        by_group.setdefault(value.group_id, []).append(value)
    return {
        group_id: [TaxonomyValue.from_model(v, v.id in selected) for v in sorted(rows, key=value_key)]
        for group_id, rows in by_group.items()
    }


class TaxonomyTreeBuilder:
    """Builds the ordered taxonomy tree from flat rows.

    Groups whose parent is missing from the input (deleted or inactive)
    are promoted to roots and logged. Traversal keeps a visited set and a
    depth limit, so a corrupted ``parent_id`` chain raises
    ``TaxonomyIntegrityError`` instead of looping.

    Example usage:
        builder = TaxonomyTreeBuilder()
        roots = builder.build(groups, values)
        rows = flatten_tree(roots)
    """

    def __init__(
        self,
        max_depth: int | None = None,
        separator: str | None = None,
    ) -> None:
        """Initialize builder.

        Args:
            max_depth: Deepest allowed level, defaults to settings.
            separator: Separator for ``full_path``, defaults to settings.
        """
        self.max_depth = max_depth if max_depth is not None else settings.taxonomy_max_depth
        self.separator = separator if separator is not None else settings.taxonomy_path_separator

    def build(
        self,
        groups: Iterable[CharacteristicGroup],
        values: Iterable[CharacteristicValue] = (),
    ) -> list[TaxonomyNode]:
        """Build the tree.

        Args:
            groups: Group rows (typically the active ones).
            values: Value rows of those groups.

        Returns:
            Root nodes in traversal order.

        Raises:
            TaxonomyIntegrityError: On a parent cycle or excessive depth.
        """
        by_id = {g.id: g for g in groups}
        values_by_group = group_values(values)

        roots: list[CharacteristicGroup] = []
        children: dict[int, list[CharacteristicGroup]] = {}
        for group in by_id.values():
            parent_id = group.parent_id
            if parent_id is None:
                roots.append(group)
            elif parent_id == group.id:
                raise TaxonomyIntegrityError("group is its own parent", [group.id])
            elif parent_id not in by_id:
                logger.warning(
                    "Taxonomy group parent unresolved, treating as root",
                    group_id=group.id,
                    parent_id=parent_id,
                )
                roots.append(group)
            else:
                children.setdefault(parent_id, []).append(group)

        visited: set[int] = set()

        def visit(group: CharacteristicGroup, level: int, parent_path: str | None) -> TaxonomyNode:
            if group.id in visited:
                raise TaxonomyIntegrityError("parent cycle detected", [group.id])
            if level > self.max_depth:
                raise TaxonomyIntegrityError(
                    f"hierarchy deeper than {self.max_depth} levels", [group.id]
                )
            visited.add(group.id)

            full_path = f"{parent_path}{self.separator}{group.name}" if parent_path else group.name
            node = TaxonomyNode(
                id=group.id,
                name=group.name,
                parent_id=group.parent_id,
                level=level,
                full_path=full_path,
                display_name="  " * level + group.name,
                sort_order=group.sort_order or 0,
                description=group.description,
                values=values_by_group.get(group.id, []),
            )
            for child in sorted(children.get(group.id, []), key=sibling_key):
                node.children.append(visit(child, level + 1, full_path))
            return node

        tree = [visit(root, 0, None) for root in sorted(roots, key=sibling_key)]

        unreachable = set(by_id) - visited
        if unreachable:
            # Only members of a parent cycle have no path to a root.
            raise TaxonomyIntegrityError("parent cycle detected", list(unreachable))

        return tree


def flatten_tree(nodes: Iterable[TaxonomyNode]) -> list[TaxonomyNode]:
    """Flatten a tree into its pre-order traversal.

    Args:
        nodes: Root nodes.

    Returns:
        Nodes in the order a depth-first traversal visits them.
    """
    flat: list[TaxonomyNode] = []
    stack = list(reversed(list(nodes)))
    while stack:
        node = stack.pop()
        flat.append(node)
        stack.extend(reversed(node.children))
    return flat


def build_sections(
    groups: Iterable[CharacteristicGroup],
    values: Iterable[CharacteristicValue] = (),
    selected_value_ids: set[int] | None = None,
    additional_section_name: str | None = None,
) -> list[Section]:
    """Build the section → group view used by product editors.

    Sections are root groups. Each carries its direct child groups.
    Non-root groups whose parent is not an active section are gathered
    into a trailing synthetic section.

    Args:
        groups: Active group rows.
        values: Active value rows.
        selected_value_ids: Values to flag as selected.
        additional_section_name: Title of the synthetic section.

    Returns:
        Ordered sections.
    """
    group_list = sorted(groups, key=sibling_key)
    values_by_group = group_values(values, selected_value_ids)

    sections: dict[int, Section] = {}
    for group in group_list:
        if group.is_section:
            sections[group.id] = Section(
                section_id=group.id,
                section_name=group.name,
                sort_order=group.sort_order or 0,
                description=group.description,
            )

    leftovers: list[SectionGroup] = []
    for group in group_list:
        if group.is_section:
            continue
        entry = SectionGroup(
            group_id=group.id,
            group_name=group.name,
            sort_order=group.sort_order or 0,
            values=values_by_group.get(group.id, []),
        )
        section = sections.get(group.parent_id)  # type: ignore[arg-type]
        if section is None:
            leftovers.append(entry)
        else:
            section.groups.append(entry)

    result = list(sections.values())
    if leftovers:
        result.append(
            Section(
                section_id=None,
                section_name=additional_section_name or settings.additional_section_name,
                sort_order=max((s.sort_order for s in result), default=0) + 1,
                groups=leftovers,
            )
        )
    return result
