"""Domain layer - value objects, lifecycle state machine, exceptions.

- **Value Objects**: ``Override`` for nullable variant fields
- **State Machines**: ``Lifecycle`` (active / inactive / deleted)
- **Exceptions**: the error families the API maps to HTTP statuses

Example usage:
    from app.domain import Lifecycle, Override

    stock = Override.from_nullable(variant.stock_override).resolve(product.stock_quantity)
    if variant.lifecycle.is_deleted:
        ...
"""

from app.domain.base import ValueObject
from app.domain.exceptions import (
    ConflictError,
    DomainError,
    NotFoundError,
    TaxonomyIntegrityError,
    TransientError,
    ValidationError,
)
from app.domain.state_machines import Lifecycle, validate_lifecycle_transition
from app.domain.value_objects import Override

__all__ = [
    # Base classes
    "ValueObject",
    # Value Objects
    "Override",
    # State Machines
    "Lifecycle",
    "validate_lifecycle_transition",
    # Exceptions
    "DomainError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "TransientError",
    "TaxonomyIntegrityError",
]
