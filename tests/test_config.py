"""Tests for configuration loading."""

import os

import pytest
from pydantic import ValidationError

from nodeflow.config import (
    AppConfig, HistoryBackend, LogLevel, get_config, get_testing_config, load_config, reset_config
)
from nodeflow.core.exceptions import ConfigurationError
from nodeflow.factory import create_run_history
from nodeflow.core.run_history import InMemoryRunHistory, SqlRunHistory


@pytest.fixture(autouse=True)
def clean_config(monkeypatch):
    for key in ("HISTORY_BACKEND", "DATABASE_URL", "NODE_TIMEOUT", "PORT", "LOG_LEVEL", "DEBUG"):
        monkeypatch.delenv(f"NODEFLOW_{key}", raising=False)
    reset_config()
    yield
    reset_config()


class TestAppConfig:

    def test_defaults(self):
        config = AppConfig()

        assert config.history_backend == HistoryBackend.MEMORY
        assert config.node_timeout is None
        assert config.max_concurrent_runs == 10

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("NODEFLOW_HISTORY_BACKEND", "SQL")
        monkeypatch.setenv("NODEFLOW_DATABASE_URL", "postgres://user:pw@db/nodeflow")
        monkeypatch.setenv("NODEFLOW_NODE_TIMEOUT", "2.5")
        monkeypatch.setenv("NODEFLOW_DEBUG", "yes")
        monkeypatch.setenv("NODEFLOW_LOG_LEVEL", "debug")

        config = AppConfig.from_env()

        assert config.history_backend == HistoryBackend.SQL
        assert config.database_url == "postgres://user:pw@db/nodeflow"
        assert config.node_timeout == 2.5
        assert config.debug is True
        assert config.log_level == LogLevel.DEBUG

    @pytest.mark.parametrize("field, value", [
        ("port", 0),
        ("max_concurrent_runs", 0),
        ("node_timeout", -1.0),
        ("database_url", "mongodb://localhost/db"),
    ])
    def test_invalid_values(self, field, value):
        with pytest.raises(ValidationError):
            AppConfig(**{field: value})

    @pytest.mark.parametrize("key, value", [
        ("PORT", "not-a-port"),
        ("PORT", "70000"),
        ("HISTORY_BACKEND", "redis"),
        ("NODE_TIMEOUT", "0"),
    ])
    def test_bad_env_value(self, monkeypatch, key, value):
        monkeypatch.setenv(f"NODEFLOW_{key}", value)

        with pytest.raises(ConfigurationError) as exc_info:
            AppConfig.from_env()

        assert exc_info.value.context["config_key"] == key.lower()
        assert f"NODEFLOW_{key}" in exc_info.value.message

    def test_get_config_is_cached(self):
        assert get_config() is get_config()

    def test_load_config_reads_env_file(self, tmp_path):
        env_file = tmp_path / "nodeflow.env"
        env_file.write_text("NODEFLOW_PORT=9100\n")

        try:
            config = load_config(str(env_file))

            assert config.port == 9100
            assert get_config() is config
        finally:
            # load_dotenv writes straight into the process environment
            os.environ.pop("NODEFLOW_PORT", None)


class TestRunHistorySelection:

    def test_memory_backend(self):
        assert isinstance(create_run_history(get_testing_config()), InMemoryRunHistory)

    def test_sql_backend(self, tmp_path):
        config = AppConfig(history_backend=HistoryBackend.SQL, database_url=f"sqlite:///{tmp_path / 'runs.db'}")

        store = create_run_history(config)
        try:
            assert isinstance(store, SqlRunHistory)
            assert store.list() == []
        finally:
            store.dispose()
