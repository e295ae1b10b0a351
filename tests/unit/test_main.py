"""
Unit tests for the server entry point.

Tests cover:
- Logging setup per format
- Store factory loading
"""

import logging

import json_log_formatter
import pytest

from cypherql.config import ServerSettings
from cypherql.errors import CypherQLError
from cypherql.main import load_store, setup_logging
from tests.conftest import FakeStore


def create_store():
    return FakeStore()


def create_nothing():
    return object()


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers = handlers
    root.setLevel(level)


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_json(self, restore_root_logger):
        setup_logging(ServerSettings(log_format="json", log_level="debug"))
        (handler,) = restore_root_logger.handlers
        assert isinstance(handler.formatter, json_log_formatter.JSONFormatter)
        assert restore_root_logger.level == logging.DEBUG

    def test_text(self, restore_root_logger):
        setup_logging(ServerSettings(log_format="text", log_level="nonsense"))
        (handler,) = restore_root_logger.handlers
        assert not isinstance(handler.formatter, json_log_formatter.JSONFormatter)
        assert restore_root_logger.level == logging.INFO


class TestLoadStore:
    """Tests for load_store."""

    def test_factory(self):
        store = load_store("tests.unit.test_main:create_store")
        assert isinstance(store, FakeStore)

    def test_not_configured(self):
        with pytest.raises(CypherQLError, match="CYPHERQL_STORE_FACTORY"):
            load_store(None)

    def test_malformed_path(self):
        with pytest.raises(CypherQLError, match="module:callable"):
            load_store("tests.unit.test_main")

    def test_missing_attribute(self):
        with pytest.raises(CypherQLError, match="no 'nope'"):
            load_store("tests.unit.test_main:nope")

    def test_not_a_store(self):
        with pytest.raises(CypherQLError, match="async run"):
            load_store("tests.unit.test_main:create_nothing")
