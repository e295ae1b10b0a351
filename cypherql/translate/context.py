"""
Request-scoped state and statement values shared by the compilers.

- RequestScope: variable-name counter and parameter collector for one
  request field; discarded when the statement is built
- CompiledStatement: the immutable statement handed to the store
- Name quoting, string literals and relationship patterns in Cypher syntax

Invariants:
    - Variable and parameter names are unique within a scope
    - Operand values only ever reach a statement through parameters
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Mapping

from ..execution import AccessMode
from ..schema.types import Direction

if TYPE_CHECKING:
    from .selection import Manifest

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_HINT_RE = re.compile(r"[^A-Za-z0-9_]")

# Words that cannot appear unquoted as map keys or property names.
RESERVED_WORDS = frozenset(
    {
        "all", "and", "as", "asc", "ascending", "by", "call", "case", "contains",
        "create", "delete", "desc", "descending", "detach", "distinct", "else",
        "end", "ends", "exists", "false", "foreach", "from", "in", "is", "limit",
        "match", "merge", "not", "null", "on", "optional", "or", "order",
        "remove", "return", "set", "skip", "starts", "then", "true", "union",
        "unwind", "when", "where", "with", "xor", "yield",
    }
)


class Cardinality(Enum):
    """Shape of a root field's result."""

    LIST = "list"
    SINGLE = "single"


def escape_name(name: str) -> str:
    """Quote a label, property or key with backticks when required."""
    if _IDENTIFIER_RE.match(name) and name.lower() not in RESERVED_WORDS:
        return name
    return "`" + name.replace("`", "``") + "`"


def prop(var: str, name: str) -> str:
    return f"{var}.{escape_name(name)}"


def string_literal(text: str) -> str:
    """Render trusted text (a declared statement) as a Cypher string literal."""
    escaped = text.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def relationship_pattern(
    start: str,
    label: str,
    end: str,
    direction: Direction,
    rel_var: str = "",
    end_label: str | None = None,
) -> str:
    """Render ``(start)-[rel:L]->(end:Label)`` for a traversal direction."""
    end_node = f"({end}:{escape_name(end_label)})" if end_label else f"({end})"
    rel = f"[{rel_var}:{escape_name(label)}]"
    if direction is Direction.IN:
        return f"({start})<-{rel}-{end_node}"
    if direction is Direction.BOTH:
        return f"({start})-{rel}-{end_node}"
    return f"({start})-{rel}->{end_node}"


class RequestScope:
    """Names and parameters for the statement of one request field.

    Not shared across requests; a new scope is created per compilation.

    Example:
        >>> scope = RequestScope()
        >>> scope.variable("movie")
        'movie_1'
        >>> scope.param("title", "X")
        '$title_2'
        >>> scope.params
        {'title_2': 'X'}
    """

    def __init__(self) -> None:
        self._counter = 0
        self.params: dict[str, Any] = {}

    def variable(self, hint: str) -> str:
        return self._name(hint.lower())

    def param(self, hint: str, value: Any) -> str:
        """Bind ``value`` to a fresh parameter and return its reference.

        Parameter names keep the case of the argument they bind.
        """
        name = self._name(hint)
        self.params[name] = value
        return f"${name}"

    def _name(self, hint: str) -> str:
        self._counter += 1
        cleaned = _HINT_RE.sub("_", hint).strip("_") or "v"
        if cleaned[0].isdigit():
            cleaned = f"v{cleaned}"
        return f"{cleaned}_{self._counter}"


@dataclass(frozen=True)
class CompiledStatement:
    """One parameterized statement for one root field.

    Attributes:
        text: Statement text (never contains operand values)
        params: Parameter name to value
        mode: Transaction mode the store must use
        manifest: Response keys of the projected root value
        cardinality: Whether the field returns a list or a single value
        column: Result column holding the projected value
    """

    text: str
    params: Mapping[str, Any] = field(default_factory=dict)
    mode: AccessMode = AccessMode.READ
    manifest: Manifest | None = None
    cardinality: Cardinality = Cardinality.LIST
    column: str = "value"

    def __post_init__(self) -> None:
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))
