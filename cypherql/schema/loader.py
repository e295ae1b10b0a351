"""
Loading of type declarations and augmentation config documents.

SDL files (``.graphql`` / ``.gql``) are read from files or directories
and concatenated in a stable order. Augmentation config documents are
YAML or JSON mappings of the ``{query, mutation, strict}`` shape.

Usage:
    type_defs = load_type_defs(["schema/", "extensions.graphql"])
    config = load_config("augment.yaml")
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Union

import yaml

from ..config import AugmentationConfig
from ..errors import AugmentationConfigError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

SDL_SUFFIXES = (".graphql", ".gql", ".graphqls")


def find_sdl_files(paths: Iterable[PathLike]) -> list[Path]:
    """Expand files and directories into the SDL files they name.

    Directories are searched recursively and their files sorted by path,
    so the same tree always yields the same declaration order.

    Raises:
        FileNotFoundError: If a path does not exist
    """
    found: list[Path] = []
    for raw in paths:
        path = Path(raw)
        if path.is_dir():
            found.extend(
                sorted(p for p in path.rglob("*") if p.is_file() and p.suffix in SDL_SUFFIXES)
            )
        elif path.is_file():
            found.append(path)
        else:
            raise FileNotFoundError(f"Schema path not found: {path}")
    return found


def load_type_defs(paths: Iterable[PathLike]) -> str:
    """Read and concatenate the SDL files under ``paths``."""
    files = find_sdl_files(paths)
    logger.debug(f"Loading type definitions from {len(files)} file(s)")
    return "\n\n".join(f.read_text(encoding="utf-8") for f in files)


def parse_config(text: str, fmt: str = "yaml") -> AugmentationConfig:
    """Parse an augmentation config document.

    Args:
        text: Document text
        fmt: "yaml" or "json"

    Raises:
        AugmentationConfigError: If the document is not a mapping or has
            an unsupported shape
    """
    try:
        data: Any = json.loads(text) if fmt == "json" else yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise AugmentationConfigError(f"Cannot parse {fmt} config: {e}") from e
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise AugmentationConfigError(
            f"Config document must be a mapping, got {type(data).__name__}"
        )
    return AugmentationConfig.from_dict(data)


def load_config(path: PathLike) -> AugmentationConfig:
    """Load an augmentation config from a ``.yaml``/``.yml``/``.json`` file."""
    path = Path(path)
    fmt = "json" if path.suffix == ".json" else "yaml"
    return parse_config(path.read_text(encoding="utf-8"), fmt)
