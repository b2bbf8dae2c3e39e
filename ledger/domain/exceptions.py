"""
Domain errors - categorized exceptions raised by the ledger core.

Validation and business-rule errors also derive from ``ValueError`` so callers that
only know the standard library still catch malformed input and rejected transitions.
"""

from enum import Enum


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    BUSINESS_RULE = "business_rule"
    RESOURCE_NOT_FOUND = "resource_not_found"
    CONFLICT = "conflict"


class LedgerError(Exception):
    """Base exception for all ledger errors."""

    category: ErrorCategory = ErrorCategory.BUSINESS_RULE
    default_code: str = "LEDGER_ERROR"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "category": self.category.value,
        }


class ValidationError(LedgerError, ValueError):
    """Malformed input caught at construction or update time."""

    category = ErrorCategory.VALIDATION
    default_code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None, code: str | None = None):
        super().__init__(message, code)
        self.field = field


class BusinessRuleError(LedgerError, ValueError):
    """Business rule breached mid-operation; the aggregate is left unchanged."""

    category = ErrorCategory.BUSINESS_RULE
    default_code = "BUSINESS_RULE_VIOLATION"


class NotFoundError(LedgerError, LookupError):
    """Referenced aggregate does not exist."""

    category = ErrorCategory.RESOURCE_NOT_FOUND
    default_code = "NOT_FOUND"

    def __init__(self, entity: str, key: object):
        super().__init__(f"{entity} not found: {key}", f"{entity.upper()}_NOT_FOUND")
        self.entity = entity
        self.key = key


class ConcurrencyConflictError(LedgerError):
    """Version mismatch at the persistence boundary; retry with a fresh read."""

    category = ErrorCategory.CONFLICT
    default_code = "VERSION_CONFLICT"

    def __init__(self, entity: str, entity_id: str, expected_version: int | None):
        super().__init__(
            f"{entity} {entity_id} was modified concurrently "
            f"(expected version {expected_version})"
        )
        self.entity = entity
        self.entity_id = entity_id
        self.expected_version = expected_version
