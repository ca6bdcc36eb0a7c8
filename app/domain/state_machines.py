"""Lifecycle state machine for products and variants.

A single tri-state lifecycle replaces the pair of ``is_active`` /
``is_deleted`` flags, so the two can never disagree.
"""

from enum import Enum

from app.domain.exceptions import ValidationError


class Lifecycle(str, Enum):
    """Product/variant lifecycle states.

    State diagram:
        ACTIVE ◄──────► INACTIVE
          │                │
          │ soft delete    │ soft delete
          ▼                ▼
        DELETED (terminal, kept for order history)
    """

    ACTIVE = "active"
    INACTIVE = "inactive"
    DELETED = "deleted"

    def can_transition_to(self, target: "Lifecycle") -> bool:
        """Check if transition to target state is valid.

        Args:
            target: Target state to transition to.

        Returns:
            True if transition is valid.
        """
        return target in _LIFECYCLE_TRANSITIONS.get(self, set())

    def allowed_transitions(self) -> list["Lifecycle"]:
        """Get list of valid target states."""
        return sorted(_LIFECYCLE_TRANSITIONS.get(self, set()), key=lambda s: s.value)

    @property
    def is_active(self) -> bool:
        """Visible in "active" listings."""
        return self is Lifecycle.ACTIVE

    @property
    def is_deleted(self) -> bool:
        """Excluded from "non-deleted" listings."""
        return self is Lifecycle.DELETED

    def is_terminal(self) -> bool:
        """Check if this is a terminal (final) state."""
        return len(_LIFECYCLE_TRANSITIONS.get(self, set())) == 0


_LIFECYCLE_TRANSITIONS: dict[Lifecycle, set[Lifecycle]] = {
    Lifecycle.ACTIVE: {Lifecycle.INACTIVE, Lifecycle.DELETED},
    Lifecycle.INACTIVE: {Lifecycle.ACTIVE, Lifecycle.DELETED},
    Lifecycle.DELETED: set(),  # Terminal state
}


def validate_lifecycle_transition(
    entity_type: str,
    entity_id: int,
    current: Lifecycle,
    target: Lifecycle,
) -> None:
    """Validate a lifecycle transition.

    Args:
        entity_type: Type of entity (e.g., "ProductVariant").
        entity_id: Entity identifier.
        current: Current lifecycle state.
        target: Requested lifecycle state.

    Raises:
        ValidationError: If the transition is not allowed.
    """
    if not current.can_transition_to(target):
        raise ValidationError(
            f"Cannot move {entity_type}({entity_id}) from '{current.value}' to '{target.value}'",
            field="status",
            entity_type=entity_type,
            entity_id=entity_id,
            current_state=current.value,
            target_state=target.value,
            allowed_transitions=[s.value for s in current.allowed_transitions()],
        )
