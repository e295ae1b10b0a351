"""
Execution seam between compiled statements and the graph store.

The store-access collaborator is injected through the GraphQL context
value. It runs one statement in one transaction of the requested mode
and classifies its own failures as transient or fatal; this module adds
no retries.

Invariants:
    - Exactly one statement per call, one transaction per statement
    - Store errors propagate; a constraint failure during a write is
      reported as ConstraintViolationError
    - Parameter values are never logged
"""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import TYPE_CHECKING, Any, Mapping, Protocol, Sequence, runtime_checkable

from .errors import ConstraintViolationError, ResolverError, StoreError

if TYPE_CHECKING:
    from .translate.context import CompiledStatement

logger = logging.getLogger(__name__)

# Store status codes that signal a uniqueness / existence constraint failure
CONSTRAINT_CODES = (
    "Neo.ClientError.Schema.ConstraintValidationFailed",
    "Neo.ClientError.Schema.ConstraintViolation",
)


class AccessMode(Enum):
    """Transaction mode for a statement."""

    READ = "READ"
    WRITE = "WRITE"


@runtime_checkable
class StoreAccess(Protocol):
    """Store-access collaborator.

    Implementations run ``statement`` with ``parameters`` inside a
    transaction of ``mode`` and return the result rows, each a mapping of
    return column to value. Failures are raised as TransientStoreError or
    FatalStoreError.
    """

    async def run(
        self,
        statement: str,
        parameters: Mapping[str, Any],
        mode: AccessMode,
    ) -> Sequence[Mapping[str, Any]]: ...


def store_from_context(context: Any) -> StoreAccess:
    """Find the store collaborator on a GraphQL context value.

    Accepts ``context["store"]`` or ``context.store``.

    Raises:
        ResolverError: If the context carries no store
    """
    store = None
    if isinstance(context, Mapping):
        store = context.get("store")
    elif context is not None:
        store = getattr(context, "store", None)
    if store is None:
        raise ResolverError("GraphQL context has no 'store' to execute statements with")
    return store


def is_constraint_error(error: StoreError) -> bool:
    return error.store_code is not None and (
        error.store_code in CONSTRAINT_CODES or "Constraint" in error.store_code
    )


async def run_statement(
    store: StoreAccess,
    compiled: CompiledStatement,
    type_name: str | None = None,
) -> Sequence[Mapping[str, Any]]:
    """Run a compiled statement and return its rows.

    Raises:
        ConstraintViolationError: If a write fails on a store constraint
        StoreError: Any other store failure, as raised by the store
    """
    logger.debug(f"Running {compiled.mode.value} statement: {compiled.text}")
    start = time.perf_counter()
    try:
        rows = await store.run(compiled.text, dict(compiled.params), compiled.mode)
    except StoreError as e:
        if compiled.mode is AccessMode.WRITE and is_constraint_error(e):
            raise ConstraintViolationError(
                f"Write rejected by store constraint: {e.message}",
                type_name=type_name,
                store_code=e.store_code,
            ) from e
        logger.warning(
            f"Statement failed ({'transient' if e.retryable else 'fatal'}): {e.message}"
        )
        raise
    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.debug(f"Statement returned {len(rows)} row(s) in {elapsed_ms:.1f}ms")
    return rows
