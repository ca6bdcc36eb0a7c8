"""Value Objects for the domain layer.

Value objects are immutable objects that are defined by their attributes
rather than identity. They are interchangeable when their values are equal.
"""

from dataclasses import dataclass
from typing import Generic, Self, TypeVar

from app.domain.base import ValueObject

T = TypeVar("T")


# ============================================================================
# Override
# ============================================================================


@dataclass(frozen=True)
class Override(ValueObject, Generic[T]):
    """A variant-level field that may or may not replace the master value.

    Presence is explicit: ``Override.of(0)`` is a real override meaning
    zero, ``Override.absent()`` means "inherit from the master". Resolution
    code branches on ``is_set``, never on the truthiness of the value.

    Example:
        stock = Override.from_nullable(variant.stock_override)
        effective = stock.resolve(product.stock_quantity)
    """

    value: T | None = None
    is_set: bool = False

    @classmethod
    def of(cls, value: T) -> Self:
        """Create a present override.

        Args:
            value: Override value, may be falsy (0, "").

        Returns:
            Present override.
        """
        if value is None:
            raise ValueError("Override.of() requires a value; use Override.absent()")
        return cls(value=value, is_set=True)

    @classmethod
    def absent(cls) -> Self:
        """Create an absent override."""
        return cls(value=None, is_set=False)

    @classmethod
    def from_nullable(cls, value: T | None) -> Self:
        """Map a nullable column to an override.

        Args:
            value: Column value, None meaning "not overridden".

        Returns:
            Present override for any non-None value.
        """
        if value is None:
            return cls.absent()
        return cls.of(value)

    def resolve(self, fallback: T) -> T:
        """Return the override when present, the fallback otherwise.

        Args:
            fallback: Master value.

        Returns:
            Effective value.
        """
        if self.is_set:
            return self.value  # type: ignore[return-value]
        return fallback
