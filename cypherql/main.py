"""
cypherql server - Main entry point.

Serves one augmented schema over HTTP:
- Declarations and augmentation config named by ServerSettings
- The store collaborator built by ``CYPHERQL_STORE_FACTORY``
- uvicorn as the ASGI server

Usage:
    CYPHERQL_SCHEMA_PATHS='["schema/"]' \\
    CYPHERQL_STORE_FACTORY=myapp.store:create_store \\
    cypherql-server

Configuration is entirely via environment variables.
See config.ServerSettings for all available settings.

Invariants:
    - The schema is built before the server accepts requests
    - Invalid declarations or config stop startup with a non-zero exit
"""

from __future__ import annotations

import importlib
import logging
import sys

import json_log_formatter
import uvicorn
from graphql import GraphQLError

from .api.http_server import create_app_from_settings
from .config import ServerSettings
from .errors import CypherQLError
from .execution import StoreAccess

logger = logging.getLogger(__name__)


def setup_logging(settings: ServerSettings) -> None:
    """Configure the root logger from settings."""
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]


def load_store(path: str | None) -> StoreAccess:
    """Import ``package.module:factory`` and call it for the store.

    Raises:
        CypherQLError: If the path is missing or malformed, or the factory
            returns no store
    """
    if not path:
        raise CypherQLError("No store factory configured (CYPHERQL_STORE_FACTORY)")
    module_path, _, attribute = path.partition(":")
    if not module_path or not attribute:
        raise CypherQLError(f"Store factory must look like 'module:callable', got '{path}'")

    module = importlib.import_module(module_path)
    factory = getattr(module, attribute, None)
    if factory is None:
        raise CypherQLError(f"Module {module_path} has no '{attribute}'")
    store = factory()
    if not isinstance(store, StoreAccess):
        raise CypherQLError(f"'{path}' did not return a store with an async run() method")
    return store


def main() -> None:
    """Main entry point."""
    settings = ServerSettings()
    setup_logging(settings)

    try:
        store = load_store(settings.store_factory)
        app = create_app_from_settings(store, settings)
    except (CypherQLError, GraphQLError, FileNotFoundError, ImportError) as e:
        logger.error(f"Startup failed: {e}")
        sys.exit(1)

    logger.info(f"Serving cypherql on {settings.host}:{settings.port}")
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
