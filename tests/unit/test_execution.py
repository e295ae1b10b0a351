"""
Unit tests for the execution seam.

Tests cover:
- Finding the store on the GraphQL context
- Running statements with their mode and parameters
- Constraint failures on writes
- Propagation of other store errors
"""

from types import SimpleNamespace

import pytest

from cypherql.errors import (
    ConstraintViolationError,
    FatalStoreError,
    ResolverError,
    TransientStoreError,
)
from cypherql.execution import AccessMode, StoreAccess, run_statement, store_from_context
from cypherql.translate import CompiledStatement

CONSTRAINT_CODE = "Neo.ClientError.Schema.ConstraintValidationFailed"


def compiled(mode=AccessMode.READ):
    return CompiledStatement(text="MATCH (n) RETURN n AS value", params={"x_1": 1}, mode=mode)


class TestStoreFromContext:
    """Tests for store lookup."""

    def test_mapping(self, store):
        assert store_from_context({"store": store}) is store

    def test_attribute(self, store):
        assert store_from_context(SimpleNamespace(store=store)) is store

    def test_missing(self):
        with pytest.raises(ResolverError, match="store"):
            store_from_context({})
        with pytest.raises(ResolverError):
            store_from_context(None)

    def test_protocol(self, store):
        """The fake store satisfies the collaborator protocol."""
        assert isinstance(store, StoreAccess)


class TestRunStatement:
    """Tests for run_statement."""

    @pytest.mark.asyncio
    async def test_passes_statement(self, store):
        """Text, parameters and mode reach the store unchanged."""
        store.respond("MATCH (n)", [{"value": 1}])
        rows = await run_statement(store, compiled(AccessMode.WRITE))
        assert rows == [{"value": 1}]
        call = store.calls[0]
        assert call.parameters == {"x_1": 1}
        assert call.mode is AccessMode.WRITE

    @pytest.mark.asyncio
    async def test_constraint_on_write(self, store):
        """Constraint failures during writes are mutation errors."""
        store.respond("MATCH", FatalStoreError("already exists", store_code=CONSTRAINT_CODE))
        with pytest.raises(ConstraintViolationError) as exc_info:
            await run_statement(store, compiled(AccessMode.WRITE), "Movie")
        assert exc_info.value.type_name == "Movie"
        assert exc_info.value.store_code == CONSTRAINT_CODE

    @pytest.mark.asyncio
    async def test_constraint_code_on_read(self, store):
        """Reads re-raise the store error as is."""
        error = FatalStoreError("odd", store_code=CONSTRAINT_CODE)
        store.respond("MATCH", error)
        with pytest.raises(FatalStoreError) as exc_info:
            await run_statement(store, compiled())
        assert exc_info.value is error

    @pytest.mark.asyncio
    async def test_transient(self, store):
        """Transient failures propagate; no retry happens here."""
        store.respond("MATCH", TransientStoreError("leader switch"))
        with pytest.raises(TransientStoreError):
            await run_statement(store, compiled(AccessMode.WRITE))
        assert len(store.calls) == 1
