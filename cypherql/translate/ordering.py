"""
Order/Pagination Compiler.

``orderBy`` values have the generated form ``<field>_asc`` /
``<field>_desc``; the first entry is the primary sort key. ``first`` and
``offset`` must be non-negative and are always bound as parameters.

Root fields sort and page the matched nodes before projection
(``WITH v ORDER BY ... SKIP ... LIMIT ...``). Nested relationship fields
sort their projected maps with ``apoc.coll.sortMulti`` and page them with
list slicing.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

from ..errors import InvalidPaginationError, TranslationError
from .context import RequestScope, escape_name, prop

# Prefix of projected keys that only exist to sort nested lists
ORDER_KEY_PREFIX = "__order_"


@dataclass(frozen=True)
class SortKey:
    field: str
    descending: bool = False

    @property
    def helper_key(self) -> str:
        return f"{ORDER_KEY_PREFIX}{self.field}"


def parse_order_by(value: str | Sequence[str] | None) -> list[SortKey]:
    """Convert ``orderBy`` enum values to sort keys, in argument order.

    Raises:
        TranslationError: If a value is not of the ``<field>_asc|desc`` form
    """
    if value is None:
        return []
    values = [value] if isinstance(value, str) else list(value)
    keys = []
    for item in values:
        field_name, _, direction = str(item).rpartition("_")
        if not field_name or direction not in ("asc", "desc"):
            raise TranslationError(f"Invalid orderBy value '{item}'")
        keys.append(SortKey(field_name, descending=direction == "desc"))
    return keys


def with_tie_breaker(keys: Sequence[SortKey], identity: str | None) -> list[SortKey]:
    """Append the identity as the last sort key so equal rows page stably."""
    keys = list(keys)
    if identity is not None and all(k.field != identity for k in keys):
        keys.append(SortKey(identity))
    return keys


def check_pagination(first: Any, offset: Any) -> None:
    """
    Raises:
        InvalidPaginationError: If ``first`` or ``offset`` is negative
    """
    for name, value in (("first", first), ("offset", offset)):
        if value is not None and value < 0:
            raise InvalidPaginationError(name, value)


def root_clauses(
    var: str,
    keys: Sequence[SortKey],
    first: int | None,
    offset: int | None,
    scope: RequestScope,
) -> str:
    """``WITH v ORDER BY ... SKIP ... LIMIT ...``, or "" when unordered and unpaged."""
    check_pagination(first, offset)
    if not keys and first is None and offset is None:
        return ""
    parts = [f"WITH {var}"]
    if keys:
        order = ", ".join(
            f"{prop(var, k.field)} {'DESC' if k.descending else 'ASC'}" for k in keys
        )
        parts.append(f"ORDER BY {order}")
    if offset is not None:
        parts.append(f"SKIP {scope.param('offset', offset)}")
    if first is not None:
        parts.append(f"LIMIT {scope.param('first', first)}")
    return " ".join(parts)


def sort_list(expression: str, keys: Sequence[SortKey]) -> str:
    """Sort a list of projected maps by their helper order keys."""
    if not keys:
        return expression
    columns = ", ".join(
        "'" + ("" if k.descending else "^") + k.helper_key + "'" for k in keys
    )
    return f"apoc.coll.sortMulti({expression}, [{columns}])"


def slice_list(
    expression: str,
    first: int | None,
    offset: int | None,
    scope: RequestScope,
) -> str:
    """Apply ``offset`` then ``first`` to a list expression."""
    check_pagination(first, offset)
    if first is None and offset is None:
        return expression
    if first is None:
        return f"{expression}[{scope.param('offset', offset)}..]"
    first_param = scope.param("first", first)
    if offset is None:
        return f"{expression}[..{first_param}]"
    offset_param = scope.param("offset", offset)
    return f"{expression}[{offset_param}..({offset_param} + {first_param})]"


def helper_projection(var: str, keys: Sequence[SortKey]) -> list[str]:
    """Map projection entries carrying the values sorted on."""
    return [f"{escape_name(k.helper_key)}: {prop(var, k.field)}" for k in keys]
