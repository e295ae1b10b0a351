"""HTTP surface for cypherql."""

from .http_server import GraphQLRequest, create_app, create_app_from_settings

__all__ = ["GraphQLRequest", "create_app", "create_app_from_settings"]
