"""Cascade-delete impact calculation and cascade deletion.

Deleting a characteristic group removes its descendant groups, every
value they own and every assignment referencing those values. The
impact report previews that for confirmation dialogs; the delete
re-resolves the same group set inside its own transaction, so a stale
preview can never decide what gets deleted.
"""

from dataclasses import dataclass, field
from typing import Any

import structlog

from app.catalog.models import CharacteristicGroup
from app.catalog.repository import TaxonomyRepository
from app.domain.exceptions import ConflictError, NotFoundError, TaxonomyIntegrityError
from app.infrastructure.config import settings
from app.infrastructure.database import UnitOfWork

logger = structlog.get_logger()


@dataclass
class GroupRef:
    """Minimal group reference used in reports."""

    id: int
    name: str
    is_section: bool

    @classmethod
    def from_model(cls, group: CharacteristicGroup) -> "GroupRef":
        """Build from an ORM row."""
        return cls(id=group.id, name=group.name, is_section=group.is_section)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "is_section": self.is_section,
            "type": "section" if self.is_section else "group",
        }


@dataclass
class Descendants:
    """Groups below a root, level by level.

    Attributes:
        levels: ``levels[0]`` are direct children, ``levels[1]`` their
            children, and so on.
    """

    levels: list[list[CharacteristicGroup]] = field(default_factory=list)

    @property
    def groups(self) -> list[CharacteristicGroup]:
        """All descendants, breadth-first."""
        return [group for level in self.levels for group in level]

    @property
    def ids(self) -> list[int]:
        """All descendant IDs, breadth-first."""
        return [group.id for group in self.groups]


@dataclass
class DeleteImpact:
    """Everything a group delete would destroy.

    Attributes:
        group: The group being deleted.
        child_groups: All descendant groups.
        values_in_group: Values owned by the group itself.
        values_in_child_groups: Values owned by descendants.
        assignments_affected: Assignment rows referencing those values.
        affected_products: Distinct products carrying those values.
        affected_products_sample: First products by name.
        warnings: Human-readable warnings for the confirmation dialog.
    """

    group: GroupRef
    child_groups: list[GroupRef]
    values_in_group: int
    values_in_child_groups: int
    assignments_affected: int
    affected_products: int
    affected_products_sample: list[dict[str, Any]]
    warnings: list[str] = field(default_factory=list)

    @property
    def total_values(self) -> int:
        """Values in the group and all descendants."""
        return self.values_in_group + self.values_in_child_groups

    @property
    def all_group_ids(self) -> list[int]:
        """The group and its descendants."""
        return [self.group.id, *[g.id for g in self.child_groups]]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "group": self.group.to_dict(),
            "child_groups": [g.to_dict() for g in self.child_groups],
            "values_in_group": self.values_in_group,
            "values_in_child_groups": self.values_in_child_groups,
            "total_values": self.total_values,
            "assignments_affected": self.assignments_affected,
            "affected_products": self.affected_products,
            "affected_products_sample": list(self.affected_products_sample),
            "warnings": list(self.warnings),
        }


@dataclass
class DeleteResult:
    """Outcome of a committed group delete."""

    group_id: int
    group_name: str
    forced: bool
    groups_deleted: int
    values_deleted: int
    assignments_deleted: int

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "group_id": self.group_id,
            "group_name": self.group_name,
            "forced": self.forced,
            "groups_deleted": self.groups_deleted,
            "values_deleted": self.values_deleted,
            "assignments_deleted": self.assignments_deleted,
        }


def build_warnings(child_groups: int, total_values: int, assignments: int, products: int) -> list[str]:
    """Warnings shown before a destructive delete."""
    warnings = []
    if child_groups > 0:
        noun = "child group" if child_groups == 1 else "child groups"
        warnings.append(f"{child_groups} {noun} will be deleted")
    if total_values > 0:
        noun = "characteristic value" if total_values == 1 else "characteristic values"
        warnings.append(f"{total_values} {noun} will be deleted")
    if assignments > 0:
        noun = "product" if products == 1 else "products"
        warnings.append(
            f"{assignments} characteristic assignments will be removed from {products} {noun}"
        )
    return warnings


class DeleteImpactCalculator:
    """Computes and performs cascade deletes of characteristic groups.

    Example usage:
        calculator = DeleteImpactCalculator(TaxonomyRepository(session), UnitOfWork(session))
        impact = await calculator.compute_delete_impact(group_id)
        if user_confirmed(impact.warnings):
            await calculator.delete_group(group_id, force=True)
    """

    def __init__(
        self,
        repository: TaxonomyRepository,
        uow: UnitOfWork,
        max_depth: int | None = None,
        sample_size: int | None = None,
    ) -> None:
        """Initialize calculator.

        Args:
            repository: Taxonomy repository.
            uow: Transaction scope used by ``delete_group``.
            max_depth: Deepest descendant level walked, defaults to settings.
            sample_size: Size of the affected product sample, defaults to settings.
        """
        self.repository = repository
        self.uow = uow
        self.max_depth = max_depth if max_depth is not None else settings.taxonomy_max_depth
        self.sample_size = sample_size if sample_size is not None else settings.impact_sample_size

    async def collect_descendants(self, group_id: int) -> Descendants:
        """Walk child groups breadth-first.

        Active and inactive children are both collected so a delete leaves
        no orphans behind.

        Args:
            group_id: Root of the walk.

        Returns:
            Descendants grouped by level.

        Raises:
            TaxonomyIntegrityError: On a cycle or a hierarchy deeper than
                the configured limit.
        """
        visited = {group_id}
        descendants = Descendants()
        frontier = [group_id]

        while frontier:
            if len(descendants.levels) >= self.max_depth:
                raise TaxonomyIntegrityError(
                    f"hierarchy below group {group_id} deeper than {self.max_depth} levels",
                    frontier,
                )
            children = await self.repository.list_children(frontier)
            if not children:
                break
            level: list[CharacteristicGroup] = []
            for child in children:
                if child.id in visited:
                    raise TaxonomyIntegrityError("parent cycle detected", [child.id])
                visited.add(child.id)
                level.append(child)
            descendants.levels.append(level)
            frontier = [child.id for child in level]

        return descendants

    async def compute_delete_impact(self, group_id: int) -> DeleteImpact:
        """Compute everything deleting a group would affect.

        Read-only; running it twice without writes in between returns the
        same report.

        Args:
            group_id: Group to inspect.

        Returns:
            Delete impact report.

        Raises:
            NotFoundError: If the group does not exist.
        """
        group = await self.repository.get_group(group_id)
        if group is None:
            raise NotFoundError("CharacteristicGroup", group_id)

        descendants = await self.collect_descendants(group_id)
        child_ids = descendants.ids
        all_ids = [group_id, *child_ids]

        values_in_group = await self.repository.count_values([group_id])
        values_in_children = await self.repository.count_values(child_ids)
        assignments, products = await self.repository.count_assignments(all_ids)
        sample = await self.repository.sample_affected_products(all_ids, self.sample_size)

        child_refs = sorted(
            (GroupRef.from_model(g) for g in descendants.groups),
            key=lambda ref: (ref.name, ref.id),
        )
        return DeleteImpact(
            group=GroupRef.from_model(group),
            child_groups=child_refs,
            values_in_group=values_in_group,
            values_in_child_groups=values_in_children,
            assignments_affected=assignments,
            affected_products=products,
            affected_products_sample=sample,
            warnings=build_warnings(
                len(child_refs), values_in_group + values_in_children, assignments, products
            ),
        )

    async def delete_group(self, group_id: int, force: bool = False) -> DeleteResult:
        """Delete a group, cascading when forced.

        The affected group set is resolved again inside the transaction.
        Without ``force`` a group that still has children or assignments
        is refused. Any failure rolls the whole delete back.

        Args:
            group_id: Group to delete.
            force: Cascade through children, values and assignments.

        Returns:
            Delete result with row counts.

        Raises:
            NotFoundError: If the group does not exist.
            ConflictError: If not forced and the group is still in use.
        """
        async with self.uow.atomic():
            impact = await self.compute_delete_impact(group_id)
            logger.info(
                "Deleting characteristic group",
                group_id=group_id,
                force=force,
                before=impact.to_dict(),
            )

            if not force:
                if impact.child_groups:
                    raise ConflictError(
                        f"Cannot delete group '{impact.group.name}': it has "
                        f"{len(impact.child_groups)} child groups",
                        code="HAS_CHILDREN",
                        details={"child_groups": [g.to_dict() for g in impact.child_groups]},
                    )
                if impact.assignments_affected:
                    raise ConflictError(
                        f"Cannot delete group '{impact.group.name}': its values are assigned "
                        f"{impact.assignments_affected} times on {impact.affected_products} products",
                        code="HAS_ASSIGNMENTS",
                        details={
                            "assignments_affected": impact.assignments_affected,
                            "affected_products": impact.affected_products,
                        },
                    )

            descendants = await self.collect_descendants(group_id)
            all_ids = [group_id, *descendants.ids]
            if set(all_ids) != set(impact.all_group_ids):
                logger.warning(
                    "Group set changed between impact and delete",
                    group_id=group_id,
                    previewed=sorted(impact.all_group_ids),
                    deleting=sorted(all_ids),
                )

            assignments_deleted = await self.repository.delete_assignments_for_groups(all_ids)
            values_deleted = await self.repository.delete_values_for_groups(all_ids)
            groups_deleted = 0
            for level in reversed(descendants.levels):
                groups_deleted += await self.repository.delete_groups([g.id for g in level])
            groups_deleted += await self.repository.delete_groups([group_id])

        result = DeleteResult(
            group_id=group_id,
            group_name=impact.group.name,
            forced=force,
            groups_deleted=groups_deleted,
            values_deleted=values_deleted,
            assignments_deleted=assignments_deleted,
        )
        logger.info("Characteristic group deleted", group_id=group_id, after=result.to_dict())
        return result
