"""
Result Mapper.

Reshapes the rows a statement returned into the value of the root field:
unwraps the result column, keeps only the keys the selection asked for
(plus retained helper keys), and turns store node / edge objects into
plain dicts. Mutation outcomes that the statement can only report as
data (no match, existing edge) are raised here.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence

from ..errors import DuplicateRelationshipError, NotFoundError
from .context import Cardinality, CompiledStatement
from .mutations import DUPLICATE_KEY, MutationKind, MutationPlan
from .selection import Manifest, ValueKind


def normalize(value: Any) -> Any:
    """Convert store values into plain python containers."""
    if isinstance(value, Mapping):
        return {k: normalize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [normalize(v) for v in value]
    if hasattr(value, "items") and hasattr(value, "keys"):
        return {k: normalize(v) for k, v in value.items()}
    return value


def shape(value: Any, manifest: Optional[Manifest]) -> Any:
    """Keep the manifest's keys of a projected map (or list of maps)."""
    value = normalize(value)
    if manifest is None or value is None:
        return value
    if isinstance(value, list):
        return [shape(v, manifest) for v in value]
    if not isinstance(value, dict):
        return value

    result: dict[str, Any] = {}
    for entry in manifest.entries:
        if entry.kind is ValueKind.EXTERNAL or entry.key not in value:
            continue
        item = value[entry.key]
        if entry.kind is ValueKind.OBJECT:
            item = shape(item, entry.child)
        result[entry.key] = item
    for key in manifest.retained:
        if key in value:
            result[key] = value[key]
    return result


def map_result(
    rows: Sequence[Mapping[str, Any]],
    compiled: CompiledStatement,
    plan: Optional[MutationPlan] = None,
) -> Any:
    """Map result rows to the root field's value.

    Raises:
        NotFoundError: If a mutation that must match something got no rows
        DuplicateRelationshipError: If an Add found the edge already present
    """
    values = [_column(row, compiled.column) for row in rows]

    if plan is not None:
        _check_mutation(values, plan)

    mapped = [shape(v, compiled.manifest) for v in values]
    if compiled.cardinality is Cardinality.LIST:
        return mapped
    return mapped[0] if mapped else None


def _column(row: Mapping[str, Any], column: str) -> Any:
    row = normalize(row)
    if column in row:
        return row[column]
    if len(row) == 1:
        return next(iter(row.values()))
    return row


def _check_mutation(values: list[Any], plan: MutationPlan) -> None:
    if not values and plan.kind.requires_match:
        if plan.kind.is_relationship:
            relation = plan.relation
            raise NotFoundError(
                f"No match for relationship '{plan.label}' between "
                f"{dict(plan.from_selector)} and {dict(plan.to_selector)}",
                resource_type=relation.relationship.type_name or plan.label if relation else "",
                resource_id={"from": dict(plan.from_selector), "to": dict(plan.to_selector)},
            )
        raise NotFoundError(
            f"{plan.type_name} with {plan.identity_field}={plan.identity_value!r} not found",
            resource_type=plan.type_name,
            resource_id=plan.identity_value,
        )
    if plan.kind is MutationKind.ADD_RELATIONSHIP and values:
        first = values[0]
        if isinstance(first, dict) and first.get(DUPLICATE_KEY):
            raise DuplicateRelationshipError(
                plan.label, dict(plan.from_selector), dict(plan.to_selector)
            )
