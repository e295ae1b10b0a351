"""
HTTP surface for an augmented schema.

Optional FastAPI app serving one AugmentedSchema over a store
collaborator:
- POST /graphql: execute a GraphQL request
- GET /schema: augmented SDL and its fingerprint
- GET /health: liveness

Invariants:
    - Field errors are returned next to partial data with status 200
    - Error entries carry the cypherql error code in ``extensions``
    - Exception details are only included when ``debug`` is set

Usage:
    app = create_app(make_augmented_schema(type_defs), store)
    uvicorn.run(app, host=settings.host, port=settings.port)
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from graphql import GraphQLError
from pydantic import BaseModel, Field

from ..augment import AugmentedSchema, make_augmented_schema
from ..config import AugmentationConfig, ServerSettings
from ..errors import CypherQLError
from ..execution import StoreAccess
from ..schema.loader import load_config, load_type_defs

logger = logging.getLogger(__name__)


class GraphQLRequest(BaseModel):
    """Body of POST /graphql."""

    query: str = Field(..., min_length=1)
    variables: Optional[dict[str, Any]] = None
    operation_name: Optional[str] = Field(default=None, alias="operationName")

    model_config = {"populate_by_name": True}


def format_error(error: GraphQLError, debug: bool = False) -> dict[str, Any]:
    """GraphQL error entry with the cypherql error code, if any."""
    formatted = dict(error.formatted)
    original = error.original_error
    if isinstance(original, CypherQLError):
        extensions = dict(formatted.get("extensions") or {})
        extensions["code"] = original.code
        if debug:
            extensions["details"] = original.details
        formatted["extensions"] = extensions
    elif original is not None and debug:
        extensions = dict(formatted.get("extensions") or {})
        extensions["exception"] = f"{type(original).__name__}: {original}"
        formatted["extensions"] = extensions
    return formatted


def create_app(
    augmented: AugmentedSchema,
    store: StoreAccess,
    settings: Optional[ServerSettings] = None,
) -> FastAPI:
    """Create the FastAPI app for an augmented schema."""
    settings = settings or ServerSettings()

    app = FastAPI(
        title="cypherql",
        description="GraphQL API translated to Cypher",
        version="1.0.0",
    )
    app.state.augmented = augmented
    app.state.store = store
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.post("/graphql")
    async def execute_graphql(body: GraphQLRequest, request: Request) -> JSONResponse:
        result = await augmented.execute(
            body.query,
            context_value={"store": store, "request": request},
            variable_values=body.variables,
            operation_name=body.operation_name,
        )
        content: dict[str, Any] = {"data": result.data}
        if result.errors:
            for error in result.errors:
                if error.original_error is not None:
                    logger.warning(f"Field error at {error.path}: {error.message}")
            content["errors"] = [format_error(e, settings.debug) for e in result.errors]
        # Requests rejected before execution carry no data
        status = 400 if result.errors and result.data is None else 200
        return JSONResponse(status_code=status, content=content)

    @app.get("/schema")
    async def get_schema() -> dict[str, Any]:
        return {"sdl": augmented.sdl, "fingerprint": augmented.fingerprint}

    @app.get("/health")
    async def health() -> dict[str, Any]:
        return {"status": "healthy", "service": "cypherql", "fingerprint": augmented.fingerprint}

    return app


def create_app_from_settings(store: StoreAccess, settings: Optional[ServerSettings] = None) -> FastAPI:
    """Load declarations and config named by ``settings`` and create the app."""
    settings = settings or ServerSettings()
    if not settings.schema_paths:
        raise CypherQLError("No schema paths configured (CYPHERQL_SCHEMA_PATHS)")
    config = load_config(settings.config_path) if settings.config_path else AugmentationConfig.from_env()
    augmented = make_augmented_schema(load_type_defs(settings.schema_paths), config)
    return create_app(augmented, store, settings)
