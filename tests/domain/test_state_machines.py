"""Tests for the product/variant lifecycle state machine."""

import pytest

from app.domain import Lifecycle
from app.domain.exceptions import ValidationError
from app.domain.state_machines import validate_lifecycle_transition


class TestLifecycle:
    """Tests for Lifecycle state machine."""

    def test_active_can_be_deactivated(self) -> None:
        """ACTIVE can transition to INACTIVE."""
        assert Lifecycle.ACTIVE.can_transition_to(Lifecycle.INACTIVE)

    def test_inactive_can_be_reactivated(self) -> None:
        """INACTIVE can transition back to ACTIVE."""
        assert Lifecycle.INACTIVE.can_transition_to(Lifecycle.ACTIVE)

    def test_both_live_states_can_be_deleted(self) -> None:
        """ACTIVE and INACTIVE can be soft-deleted."""
        assert Lifecycle.ACTIVE.can_transition_to(Lifecycle.DELETED)
        assert Lifecycle.INACTIVE.can_transition_to(Lifecycle.DELETED)

    def test_deleted_is_terminal(self) -> None:
        """DELETED is a terminal state."""
        assert Lifecycle.DELETED.is_terminal()
        assert Lifecycle.DELETED.allowed_transitions() == []
        assert not Lifecycle.DELETED.can_transition_to(Lifecycle.ACTIVE)

    def test_flags_derived_from_single_state(self) -> None:
        """Active and deleted flags can never both be true."""
        for state in Lifecycle:
            assert not (state.is_active and state.is_deleted)
        assert Lifecycle.ACTIVE.is_active
        assert Lifecycle.DELETED.is_deleted
        assert not Lifecycle.INACTIVE.is_active
        assert not Lifecycle.INACTIVE.is_deleted

    def test_values_are_strings(self) -> None:
        """States round-trip through their stored string."""
        assert Lifecycle("deleted") is Lifecycle.DELETED


class TestValidateLifecycleTransition:
    """Tests for validate_lifecycle_transition."""

    def test_valid_transition_passes(self) -> None:
        """A valid transition raises nothing."""
        validate_lifecycle_transition("ProductVariant", 1, Lifecycle.ACTIVE, Lifecycle.DELETED)

    def test_invalid_transition_raises(self) -> None:
        """Leaving DELETED is a validation error with context."""
        with pytest.raises(ValidationError) as exc_info:
            validate_lifecycle_transition(
                "ProductVariant", 7, Lifecycle.DELETED, Lifecycle.ACTIVE
            )

        details = exc_info.value.details
        assert details["current_state"] == "deleted"
        assert details["target_state"] == "active"
        assert details["allowed_transitions"] == []
        assert details["field"] == "status"
