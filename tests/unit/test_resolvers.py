"""
Unit tests for the resolver registry.

Tests cover:
- Registration and lookup
- Decorator registration
- Duplicate registration
- Freezing
"""

import threading

import pytest

from cypherql.augment import ResolverRegistry
from cypherql.errors import RegistryFrozenError, ResolverError


def poster(movie, args):
    return f"https://img.example/{movie['movieId']}.png"


class TestRegistry:
    """Tests for ResolverRegistry."""

    def test_register_and_get(self):
        registry = ResolverRegistry()
        registry.register("Movie", "poster", poster)
        assert registry.get("Movie", "poster") is poster
        assert ("Movie", "poster") in registry
        assert len(registry) == 1

    def test_get_missing(self):
        assert ResolverRegistry().get("Movie", "poster") is None

    def test_decorator(self):
        """The decorator registers and returns the function."""
        registry = ResolverRegistry()

        @registry.resolver("Movie", "poster")
        def resolve_poster(movie, args):
            return None

        assert registry.get("Movie", "poster") is resolve_poster

    def test_duplicate(self):
        registry = ResolverRegistry()
        registry.register("Movie", "poster", poster)
        with pytest.raises(ResolverError, match="already registered"):
            registry.register("Movie", "poster", poster)

    def test_from_mapping(self):
        registry = ResolverRegistry.from_mapping({"Movie": {"poster": poster}})
        assert registry.get("Movie", "poster") is poster

    def test_frozen(self):
        """No registration after freeze; lookups keep working."""
        registry = ResolverRegistry.from_mapping({"Movie": {"poster": poster}})
        registry.freeze()
        assert registry.frozen
        with pytest.raises(RegistryFrozenError):
            registry.register("Movie", "trailer", poster)
        assert registry.get("Movie", "poster") is poster

    def test_concurrent_registration(self):
        """Registration from several threads keeps every entry."""
        registry = ResolverRegistry()

        def register(n):
            registry.register("Movie", f"field{n}", poster)

        threads = [threading.Thread(target=register, args=(n,)) for n in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(registry) == 20
