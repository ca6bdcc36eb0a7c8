"""Tests for domain value objects."""

import dataclasses

import pytest

from app.domain import Override


class TestOverride:
    """Tests for Override value object."""

    def test_from_nullable_none_is_absent(self) -> None:
        """A NULL column means no override."""
        override = Override.from_nullable(None)
        assert not override.is_set
        assert override == Override.absent()

    def test_zero_is_present(self) -> None:
        """Zero is a real override, not a missing one."""
        override = Override.from_nullable(0)
        assert override.is_set
        assert override.resolve(12) == 0

    def test_empty_string_is_present(self) -> None:
        """Empty text overrides too."""
        assert Override.of("").resolve("master") == ""

    def test_absent_resolves_to_fallback(self) -> None:
        """Absent overrides inherit the master value."""
        assert Override.absent().resolve(12) == 12
        assert Override.absent().resolve(None) is None

    def test_of_requires_value(self) -> None:
        """Override.of() refuses None."""
        with pytest.raises(ValueError):
            Override.of(None)

    def test_immutable(self) -> None:
        """Overrides are frozen."""
        override = Override.of(5)
        with pytest.raises(dataclasses.FrozenInstanceError):
            override.value = 6  # type: ignore[misc]

    def test_equality_by_value(self) -> None:
        """Overrides compare by their attributes."""
        assert Override.of(5) == Override.of(5)
        assert Override.of(5) != Override.of(0)
