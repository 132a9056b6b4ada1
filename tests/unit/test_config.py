"""
Unit tests for configuration module

These tests validate the environment-driven settings and the table naming
model the store builds its statements from.
"""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from sessionstore.core.config import (
    DEFAULT_KDF_ITERATIONS,
    MAX_KDF_ITERATIONS,
    Settings,
    TableNaming,
)

# Mark all tests in this module as unit tests
pytestmark = pytest.mark.unit


class TestSettings:
    """Test session store settings"""

    def test_default_settings(self):
        """Test default configuration values"""
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(_env_file=None)

        assert settings.DATABASE_URL == "sqlite:///./data/sessions.db"
        assert settings.SESSION_TABLE == "sessions"
        assert settings.KEY_COLUMN == "key"
        assert settings.DATA_COLUMN == "data"
        assert settings.EXPIRATION_COLUMN == "expiration"
        assert settings.SERIALIZER == "json"
        assert settings.SECRET_KEY is None
        assert settings.INSERT_CONFLICT_FALLBACK is True
        assert settings.LOG_LEVEL == "INFO"
        assert settings.JSON_LOGGING is False

    def test_environment_overrides(self):
        env_vars = {
            'SESSIONSTORE_DATABASE_URL': 'postgresql://app@db/app',
            'SESSIONSTORE_SESSION_TABLE': 'web_sessions',
            'SESSIONSTORE_KEY_COLUMN': 'sid',
            'SESSIONSTORE_INSERT_CONFLICT_FALLBACK': 'false',
            'SESSIONSTORE_LOG_LEVEL': 'debug',
        }

        with patch.dict(os.environ, env_vars):
            settings = Settings(_env_file=None)

        assert settings.DATABASE_URL == 'postgresql://app@db/app'
        assert settings.SESSION_TABLE == 'web_sessions'
        assert settings.KEY_COLUMN == 'sid'
        assert settings.INSERT_CONFLICT_FALLBACK is False
        assert settings.LOG_LEVEL == 'DEBUG'

    def test_unknown_log_level_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, LOG_LEVEL="chatty")

    def test_kdf_iterations_clamped(self):
        assert Settings(_env_file=None, ENCRYPTION_KDF_ITERATIONS=10).ENCRYPTION_KDF_ITERATIONS == DEFAULT_KDF_ITERATIONS
        assert Settings(_env_file=None, ENCRYPTION_KDF_ITERATIONS=10**9).ENCRYPTION_KDF_ITERATIONS == MAX_KDF_ITERATIONS
        assert Settings(_env_file=None, ENCRYPTION_KDF_ITERATIONS=500_000).ENCRYPTION_KDF_ITERATIONS == 500_000

    def test_table_naming_from_settings(self):
        settings = Settings(_env_file=None, SESSION_TABLE="t", KEY_COLUMN="k", DATA_COLUMN="d", EXPIRATION_COLUMN="e")

        assert settings.table_naming() == TableNaming(table="t", key_column="k", data_column="d", expiration_column="e")

    def test_serializer_config_by_name(self):
        assert Settings(_env_file=None, SERIALIZER="Pickle").serializer_config() == "pickle"

    def test_serializer_config_for_fernet(self):
        settings = Settings(
            _env_file=None,
            SERIALIZER="fernet",
            SECRET_KEY="s3cret",
            ENCRYPTION_SALT="pepper",
        )

        assert settings.serializer_config() == {
            "name": "fernet",
            "secret": "s3cret",
            "salt": "pepper",
            "iterations": DEFAULT_KDF_ITERATIONS,
        }


class TestTableNaming:
    """Test validation of table and column names"""

    def test_defaults(self):
        naming = TableNaming()

        assert naming.table == "sessions"
        assert naming.key_column == "key"
        assert naming.data_column == "data"
        assert naming.expiration_column == "expiration"

    @pytest.mark.parametrize("field", ["table", "key_column", "data_column", "expiration_column"])
    def test_empty_name_rejected(self, field):
        with pytest.raises(ValidationError):
            TableNaming(**{field: ""})

    def test_multiline_name_rejected(self):
        with pytest.raises(ValidationError):
            TableNaming(table="sessions\nDROP TABLE users")

    def test_overlong_name_rejected(self):
        with pytest.raises(ValidationError):
            TableNaming(key_column="k" * 256)

    def test_naming_is_immutable(self):
        naming = TableNaming()

        with pytest.raises(ValidationError):
            naming.table = "other"
