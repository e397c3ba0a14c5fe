"""Tests for gatebot.config."""

import os
from unittest import mock

import pytest

from gatebot.config import (
    DEFAULT_PORT,
    GatewayConfig,
    env_bool,
    env_int,
    normalize_database_url,
)

BASE_ENV = {
    "DISCORD_TOKEN": "test_token",
    "GUILD_ID": "111",
    "VERIFIED_ROLE_ID": "222",
    "DATABASE_URL": "postgres://user:pw@db.example.com/verify",
    "GAME_URL": "https://game.example.com/play",
}


class TestEnvBool:
    def test_default_when_unset(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            assert env_bool("TEST_VAR") is False
            assert env_bool("TEST_VAR", default=True) is True

    def test_true_and_false_values(self):
        for value in ["1", "true", "YES", " on "]:
            with mock.patch.dict(os.environ, {"TEST_VAR": value}, clear=True):
                assert env_bool("TEST_VAR") is True, value
        for value in ["0", "false", "NO", " off "]:
            with mock.patch.dict(os.environ, {"TEST_VAR": value}, clear=True):
                assert env_bool("TEST_VAR", default=True) is False, value

    def test_invalid_value_falls_back_to_default(self):
        with mock.patch.dict(os.environ, {"TEST_VAR": "maybe"}, clear=True):
            assert env_bool("TEST_VAR", default=True) is True


class TestEnvInt:
    def test_parses_and_defaults(self):
        with mock.patch.dict(os.environ, {"TEST_VAR": "42"}, clear=True):
            assert env_int("TEST_VAR") == 42
        with mock.patch.dict(os.environ, {"TEST_VAR": ""}, clear=True):
            assert env_int("TEST_VAR", default=7) == 7
        with mock.patch.dict(os.environ, {"TEST_VAR": "abc"}, clear=True):
            assert env_int("TEST_VAR", default=7) == 7

    def test_surrounding_whitespace_and_signs(self):
        with mock.patch.dict(os.environ, {"TEST_VAR": " 8080 "}, clear=True):
            assert env_int("TEST_VAR") == 8080
        with mock.patch.dict(os.environ, {"TEST_VAR": "-5"}, clear=True):
            assert env_int("TEST_VAR", default=60) == 60


def test_normalize_database_url():
    assert (
        normalize_database_url("postgres://u:p@h/db") == "postgresql+asyncpg://u:p@h/db"
    )
    assert (
        normalize_database_url("postgresql://u:p@h/db")
        == "postgresql+asyncpg://u:p@h/db"
    )
    assert (
        normalize_database_url("postgresql+asyncpg://u:p@h/db")
        == "postgresql+asyncpg://u:p@h/db"
    )


class TestGatewayConfigLoad:
    def test_load_with_required_variables(self):
        with mock.patch.dict(os.environ, BASE_ENV, clear=True):
            config = GatewayConfig.load()

        assert config.discord_token == "test_token"
        assert config.guild_id == 111
        assert config.verified_role_id == 222
        assert config.database_url.startswith("postgresql+asyncpg://user:pw@db.")
        assert config.game_url == "https://game.example.com/play"
        assert config.game_place_id is None
        assert config.link_scheme == "query"
        assert config.port == DEFAULT_PORT
        assert config.strict_sessions is True
        assert config.webhook_secret is None

    def test_load_with_optional_variables(self):
        env = {
            **BASE_ENV,
            "WEBHOOK_SECRET": "s3cret",
            "ADMIN_LOG_CHANNEL_ID": "333",
            "PORT": "8080",
            "SESSION_TTL_MINUTES": "15",
            "STRICT_SESSIONS": "false",
            "DATABASE_SSL": "no",
        }
        with mock.patch.dict(os.environ, env, clear=True):
            config = GatewayConfig.load()

        assert config.webhook_secret == "s3cret"
        assert config.admin_log_channel_id == 333
        assert config.port == 8080
        assert config.session_ttl_minutes == 15
        assert config.strict_sessions is False
        assert config.database_ssl is False

    def test_place_id_selects_launch_data_scheme(self):
        env = {k: v for k, v in BASE_ENV.items() if k != "GAME_URL"}
        env["GAME_PLACE_ID"] = "123456789"
        with mock.patch.dict(os.environ, env, clear=True):
            config = GatewayConfig.load()

        assert config.game_place_id == "123456789"
        assert config.link_scheme == "launch-data"

    def test_missing_required_variables(self):
        with mock.patch.dict(os.environ, {"DISCORD_TOKEN": "x"}, clear=True):
            with pytest.raises(RuntimeError, match="Missing env vars") as excinfo:
                GatewayConfig.load()

        message = str(excinfo.value)
        for name in ("GUILD_ID", "VERIFIED_ROLE_ID", "DATABASE_URL", "GAME_URL"):
            assert name in message

    def test_both_game_settings_rejected(self):
        env = {**BASE_ENV, "GAME_PLACE_ID": "123"}
        with mock.patch.dict(os.environ, env, clear=True):
            with pytest.raises(RuntimeError, match="only one"):
                GatewayConfig.load()

    def test_non_numeric_ids_rejected(self):
        env = {**BASE_ENV, "GUILD_ID": "my-guild"}
        with mock.patch.dict(os.environ, env, clear=True):
            with pytest.raises(RuntimeError, match="GUILD_ID"):
                GatewayConfig.load()
