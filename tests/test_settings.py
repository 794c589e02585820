"""Tests for environment-driven settings."""

import pytest

from policyledger.infrastructure import load_settings

_VARS = (
    "NEO4J_URI",
    "NEO4J_USER",
    "NEO4J_PASSWORD",
    "POLICYLEDGER_QUERY_TIMEOUT",
    "POLICYLEDGER_PHONE_REGION",
)


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in _VARS:
        # setenv first so teardown also clears values a .env file loaded.
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    # An empty .env keeps a developer's real one out of the test.
    env_file = tmp_path / ".env"
    env_file.write_text("")
    return env_file


def test_defaults(clean_env):
    settings = load_settings(clean_env)
    assert settings.neo4j_uri == "bolt://localhost:7687"
    assert settings.neo4j_user == "neo4j"
    assert settings.query_timeout == 10.0
    assert settings.phone_region == "ZA"


def test_values_from_environment(clean_env, monkeypatch):
    monkeypatch.setenv("NEO4J_URI", "bolt://db:7687")
    monkeypatch.setenv("POLICYLEDGER_QUERY_TIMEOUT", "2.5")
    monkeypatch.setenv("POLICYLEDGER_PHONE_REGION", "us")
    settings = load_settings(clean_env)
    assert settings.neo4j_uri == "bolt://db:7687"
    assert settings.query_timeout == 2.5
    assert settings.phone_region == "US"


def test_values_from_env_file(clean_env):
    clean_env.write_text("NEO4J_USER=ledger\nPOLICYLEDGER_QUERY_TIMEOUT=30\n")
    settings = load_settings(clean_env)
    assert settings.neo4j_user == "ledger"
    assert settings.query_timeout == 30.0


@pytest.mark.parametrize("value", ["soon", "0", "-1"])
def test_bad_timeout_is_rejected(clean_env, monkeypatch, value):
    monkeypatch.setenv("POLICYLEDGER_QUERY_TIMEOUT", value)
    with pytest.raises(ValueError):
        load_settings(clean_env)
