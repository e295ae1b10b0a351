"""
Error types for cypherql.

This module defines every exception raised by the library:
- CypherQLError: Base exception
- SchemaModelError / DuplicateFieldError: Malformed type declarations
- AugmentationConfigError: Invalid augmentation configuration
- InvalidFilterOperatorError / InvalidPaginationError: Bad request arguments
- NotFoundError / ConstraintViolationError / DuplicateRelationshipError:
  Mutation outcomes
- TransientStoreError / FatalStoreError: Failures reported by the store
- ResolverError / RegistryFrozenError: Misconfigured resolvers or context

Invariants:
    - All errors inherit from CypherQLError
    - Build-time errors block schema construction
    - Request-time errors are raised from a single field resolver and
      surface as a field error in a partial response
    - Store errors are never swallowed; they propagate classified
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class CypherQLError(Exception):
    """Base exception for all cypherql errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "CYPHERQL_ERROR"
        self.details = details or {}


# =============================================================================
# Build-time errors
# =============================================================================


class SchemaModelError(CypherQLError):
    """Type declarations cannot be turned into a schema model.

    Raised when:
    - A directive is used on a field whose type does not support it
    - More than one identity field is declared on a type
    - Paired relationship fields disagree on direction
    - A computed statement references an unknown placeholder
    """

    def __init__(
        self,
        message: str,
        type_name: Optional[str] = None,
        field_name: Optional[str] = None,
        code: str = "SCHEMA_MODEL_ERROR",
    ) -> None:
        super().__init__(
            message,
            code=code,
            details={"type_name": type_name, "field_name": field_name},
        )
        self.type_name = type_name
        self.field_name = field_name


class DuplicateFieldError(SchemaModelError):
    """An `extend` block redeclares a field that already exists."""

    def __init__(self, type_name: str, field_name: str) -> None:
        super().__init__(
            f"Field '{field_name}' is already declared on type '{type_name}'",
            type_name=type_name,
            field_name=field_name,
            code="DUPLICATE_FIELD",
        )


class AugmentationConfigError(CypherQLError):
    """Augmentation configuration is invalid.

    Raised when:
    - An exclusion names a type that is not declared (strict mode)
    - An operation entry is neither a bool nor an exclusion mapping
    """

    def __init__(
        self,
        message: str,
        unknown_types: Optional[List[str]] = None,
    ) -> None:
        super().__init__(
            message,
            code="AUGMENTATION_CONFIG_ERROR",
            details={"unknown_types": unknown_types or []},
        )
        self.unknown_types = unknown_types or []


# =============================================================================
# Request-time errors
# =============================================================================


class TranslationError(CypherQLError):
    """A request could not be translated into a statement."""


class InvalidFilterOperatorError(TranslationError):
    """A filter key applies an operator the field type does not support."""

    def __init__(
        self,
        type_name: str,
        key: str,
        allowed: Optional[List[str]] = None,
    ) -> None:
        allowed = allowed or []
        msg = f"Invalid filter key '{key}' for type '{type_name}'"
        if allowed:
            msg += f". Allowed operators: {', '.join(allowed)}"
        super().__init__(
            msg,
            code="INVALID_FILTER_OPERATOR",
            details={"type_name": type_name, "key": key, "allowed": allowed},
        )
        self.type_name = type_name
        self.key = key
        self.allowed = allowed


class InvalidPaginationError(TranslationError):
    """`first` or `offset` is negative."""

    def __init__(self, argument: str, value: Any) -> None:
        super().__init__(
            f"Argument '{argument}' must be a non-negative integer, got {value!r}",
            code="INVALID_PAGINATION",
            details={"argument": argument, "value": value},
        )
        self.argument = argument
        self.value = value


class MutationError(CypherQLError):
    """Base class for mutation outcome errors."""


class NotFoundError(MutationError):
    """The node or relationship targeted by a mutation does not exist.

    Raised when:
    - Update/Delete finds no node with the given identity
    - A relationship mutation cannot match one of its endpoints
    - Remove/Update of a relationship finds no such edge
    """

    def __init__(
        self,
        message: str,
        resource_type: str,
        resource_id: Any = None,
    ) -> None:
        super().__init__(
            message,
            code="NOT_FOUND",
            details={
                "resource_type": resource_type,
                "resource_id": resource_id,
            },
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class ConstraintViolationError(MutationError):
    """The store rejected a write because of a uniqueness constraint."""

    def __init__(
        self,
        message: str,
        type_name: Optional[str] = None,
        store_code: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="CONSTRAINT_VIOLATION",
            details={"type_name": type_name, "store_code": store_code},
        )
        self.type_name = type_name
        self.store_code = store_code


class DuplicateRelationshipError(MutationError):
    """An Add mutation targets an edge that already exists."""

    def __init__(self, label: str, from_id: Any, to_id: Any) -> None:
        super().__init__(
            f"Relationship '{label}' already exists between {from_id!r} and {to_id!r}",
            code="DUPLICATE_RELATIONSHIP",
            details={"label": label, "from": from_id, "to": to_id},
        )
        self.label = label
        self.from_id = from_id
        self.to_id = to_id


# =============================================================================
# Execution-tier errors
# =============================================================================


class StoreError(CypherQLError):
    """Failure reported by the store-access collaborator.

    Attributes:
        store_code: Store-specific status code, if any
        retryable: Whether the collaborator may retry the statement
    """

    retryable = False

    def __init__(
        self,
        message: str,
        store_code: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="STORE_ERROR",
            details={"store_code": store_code, "retryable": self.retryable},
        )
        self.store_code = store_code


class TransientStoreError(StoreError):
    """Temporary store failure (e.g. leader switch, lock timeout)."""

    retryable = True


class FatalStoreError(StoreError):
    """Non-retryable store failure."""


class ResolverError(CypherQLError):
    """The execution context or resolver registry is missing something.

    Raised when:
    - No store is found on the GraphQL context
    - An ignored field has no registered resolver
    - A field is registered twice
    """

    def __init__(self, message: str) -> None:
        super().__init__(message, code="RESOLVER_ERROR")


class RegistryFrozenError(ResolverError):
    """A resolver was registered after the registry was frozen."""
