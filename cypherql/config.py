"""
Configuration management for cypherql.

Two layers of configuration:
- AugmentationConfig: which types get generated query / mutation fields.
  Consumed once when the augmented schema is built.
- ServerSettings: the optional HTTP surface, read from environment
  variables with the ``CYPHERQL_`` prefix.

Invariants:
    - Configuration values are immutable once loaded
    - Every setting has a default that generates the full API

How to change safely:
    - Add new settings with defaults that keep the generated API unchanged
    - Keep from_dict accepting the documented ``{query, mutation}`` shape
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Mapping

from pydantic import Field
from pydantic_settings import BaseSettings

from .errors import AugmentationConfigError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OperationConfig:
    """Generation settings for one operation kind (query or mutation).

    Attributes:
        enabled: Whether any field of this kind is generated
        exclude: Type names that get no generated field of this kind
    """

    enabled: bool = True
    exclude: tuple[str, ...] = ()

    def includes(self, type_name: str) -> bool:
        return self.enabled and type_name not in self.exclude

    @classmethod
    def from_value(cls, value: Any, operation: str) -> OperationConfig:
        """Accept ``True``/``False`` or ``{"exclude": [...]}``.

        Raises:
            AugmentationConfigError: If value has another shape
        """
        if value is None:
            return cls()
        if isinstance(value, bool):
            return cls(enabled=value)
        if isinstance(value, Mapping):
            unknown = set(value) - {"exclude"}
            if unknown:
                raise AugmentationConfigError(
                    f"Unknown keys in '{operation}' config: {sorted(unknown)}"
                )
            exclude = value.get("exclude") or ()
            if isinstance(exclude, str) or not all(isinstance(n, str) for n in exclude):
                raise AugmentationConfigError(
                    f"'{operation}.exclude' must be a list of type names"
                )
            return cls(enabled=True, exclude=tuple(exclude))
        raise AugmentationConfigError(
            f"'{operation}' config must be a bool or an exclusion mapping, "
            f"got {type(value).__name__}"
        )

    def to_value(self) -> bool | dict[str, list[str]]:
        if not self.enabled:
            return False
        if self.exclude:
            return {"exclude": list(self.exclude)}
        return True


@dataclass(frozen=True)
class AugmentationConfig:
    """Augmentation configuration.

    Attributes:
        query: Query field generation settings
        mutation: Mutation field generation settings
        strict: Raise on exclusions naming undeclared types instead of
            logging a warning

    Example:
        >>> config = AugmentationConfig.from_dict(
        ...     {"query": True, "mutation": {"exclude": ["Genre"]}}
        ... )
        >>> config.mutation.includes("Genre")
        False
    """

    query: OperationConfig = field(default_factory=OperationConfig)
    mutation: OperationConfig = field(default_factory=OperationConfig)
    strict: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> AugmentationConfig:
        """Create from the ``{query, mutation, strict}`` mapping.

        Raises:
            AugmentationConfigError: If an entry has an unsupported shape
        """
        data = data or {}
        unknown = set(data) - {"query", "mutation", "strict"}
        if unknown:
            raise AugmentationConfigError(f"Unknown augmentation config keys: {sorted(unknown)}")
        return cls(
            query=OperationConfig.from_value(data.get("query"), "query"),
            mutation=OperationConfig.from_value(data.get("mutation"), "mutation"),
            strict=bool(data.get("strict", False)),
        )

    @classmethod
    def from_env(cls) -> AugmentationConfig:
        """Load configuration from environment variables.

        CYPHERQL_QUERY / CYPHERQL_MUTATION take "true"/"false";
        CYPHERQL_QUERY_EXCLUDE / CYPHERQL_MUTATION_EXCLUDE take a
        comma-separated list of type names.
        """

        def operation(prefix: str) -> OperationConfig:
            enabled = os.getenv(f"CYPHERQL_{prefix}", "true").lower() == "true"
            exclude = os.getenv(f"CYPHERQL_{prefix}_EXCLUDE", "")
            return OperationConfig(
                enabled=enabled,
                exclude=tuple(n.strip() for n in exclude.split(",") if n.strip()),
            )

        return cls(
            query=operation("QUERY"),
            mutation=operation("MUTATION"),
            strict=os.getenv("CYPHERQL_STRICT", "false").lower() == "true",
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "query": self.query.to_value(),
            "mutation": self.mutation.to_value(),
            "strict": self.strict,
        }

    def check_exclusions(self, declared: set[str]) -> None:
        """Verify every excluded name is a declared type.

        Raises:
            AugmentationConfigError: In strict mode, if a name is unknown
        """
        unknown = sorted(
            (set(self.query.exclude) | set(self.mutation.exclude)) - declared
        )
        if not unknown:
            return
        if self.strict:
            raise AugmentationConfigError(
                f"Excluded types are not declared: {unknown}", unknown_types=unknown
            )
        logger.warning(f"Ignoring exclusions for undeclared types: {unknown}")


class ServerSettings(BaseSettings):
    """HTTP surface configuration."""

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080)

    # Declarations and augmentation config
    schema_paths: list[str] = Field(
        default_factory=list, description="SDL files or directories to load"
    )
    config_path: str | None = Field(
        default=None, description="YAML/JSON augmentation config document"
    )

    # Store collaborator, "package.module:factory"
    store_factory: str | None = Field(
        default=None, description="Import path of a callable returning the StoreAccess"
    )

    # Response shaping
    debug: bool = Field(default=False, description="Include exception details in errors")

    cors_origins: list[str] = Field(default=["*"])

    # Observability
    log_level: str = Field(default="INFO", description="DEBUG, INFO, WARNING, ERROR")
    log_format: str = Field(default="json", description="json or text")

    model_config = {"env_prefix": "CYPHERQL_"}
