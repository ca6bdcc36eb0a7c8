"""Domain exceptions.

All catalog-level errors that represent invalid input, missing rows,
constraint violations or structural corruption. The API layer maps each
family to its own HTTP status, so callers can tell "already exists"
apart from "not found" and from transient infrastructure trouble.
"""

from typing import Any


class DomainError(Exception):
    """Base class for all domain exceptions.

    All domain errors should inherit from this class to allow
    catching domain-specific errors at the application layer.
    """

    error_code = "DOMAIN_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize domain error.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


# ============================================================================
# Input Errors
# ============================================================================


class ValidationError(DomainError):
    """Raised for malformed input. Never retried."""

    error_code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None, **details: Any) -> None:
        """Initialize validation error.

        Args:
            message: What is wrong with the input.
            field: Offending field name, when there is one.
            **details: Extra context.
        """
        if field is not None:
            details["field"] = field
        super().__init__(message, details=details)
        self.field = field


class NotFoundError(DomainError):
    """Raised when a referenced row does not exist."""

    error_code = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        """Initialize not found error.

        Args:
            entity_type: Type of entity (e.g., "CharacteristicGroup").
            entity_id: Requested identifier.
        """
        super().__init__(
            f"{entity_type} {entity_id} not found",
            details={"entity_type": entity_type, "entity_id": entity_id},
        )
        self.entity_type = entity_type
        self.entity_id = entity_id


# ============================================================================
# Constraint Errors
# ============================================================================


class ConflictError(DomainError):
    """Raised when an operation collides with existing data.

    ``code`` distinguishes the reason (duplicate key, group still has
    children, group still referenced by assignments).
    """

    error_code = "CONFLICT"

    def __init__(
        self,
        message: str,
        code: str = "CONFLICT",
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize conflict error.

        Args:
            message: Human-readable error message.
            code: Machine-readable conflict reason.
            details: Optional additional context.
        """
        super().__init__(message, details=details)
        self.code = code


# ============================================================================
# Infrastructure Errors
# ============================================================================


class TransientError(DomainError):
    """Raised when a retryable database failure persisted after one retry."""

    error_code = "TRANSIENT_ERROR"

    def __init__(self, operation: str, reason: str) -> None:
        """Initialize transient error.

        Args:
            operation: Operation that failed.
            reason: Underlying driver message.
        """
        super().__init__(
            f"Temporary database failure during {operation}",
            details={"operation": operation, "reason": reason},
        )


# ============================================================================
# Taxonomy Errors
# ============================================================================


class TaxonomyIntegrityError(DomainError):
    """Raised when the group hierarchy is structurally corrupt.

    Covers parent cycles and hierarchies deeper than the configured
    maximum. Traversals fail fast with this error instead of looping.
    """

    error_code = "TAXONOMY_INTEGRITY_ERROR"

    def __init__(self, reason: str, group_ids: list[int] | None = None) -> None:
        """Initialize taxonomy integrity error.

        Args:
            reason: Description of the corruption.
            group_ids: Groups involved.
        """
        ids = sorted(group_ids or [])
        super().__init__(
            f"Taxonomy integrity violation: {reason}",
            details={"reason": reason, "group_ids": ids},
        )
        self.group_ids = ids
