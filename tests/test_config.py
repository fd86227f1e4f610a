"""
Tests for configuration models, environment loading and defaults.
"""
import os
from unittest.mock import patch

import pydantic
import pytest

from bulkload.setup.config.loader import ConfigLoader, parse_bool
from bulkload.setup.config.models import DatabaseConfig, ProcessorConfig, ProcessorOptions
from bulkload.setup.config.profiles import ConfigurationProfile, apply_profile, get_processing_defaults

MB = 1024 * 1024


class TestProcessingDefaults:
    """Host-derived defaults."""

    def _defaults(self, cpus, available_mb):
        with patch("bulkload.setup.config.profiles.psutil") as mock_psutil:
            mock_psutil.cpu_count.return_value = cpus
            mock_psutil.virtual_memory.return_value.available = available_mb * MB
            return get_processing_defaults()

    def test_multi_core_host(self):
        defaults = self._defaults(cpus=8, available_mb=20480)

        assert defaults["batch_size"] == 204
        assert defaults["max_concurrent_batches"] == 4
        assert defaults["worker_count"] == 7
        assert defaults["use_workers"] is True

    def test_single_core_host(self):
        defaults = self._defaults(cpus=1, available_mb=4096)

        assert defaults["use_workers"] is False
        assert defaults["worker_count"] == 1
        assert defaults["max_concurrent_batches"] == 3
        assert defaults["batch_size"] == 100

    def test_batch_size_bounds(self):
        assert self._defaults(cpus=64, available_mb=1 << 20)["batch_size"] == 500
        assert self._defaults(cpus=64, available_mb=1 << 20)["max_concurrent_batches"] == 10


class TestProcessorModels:
    def test_options_reject_unknown_keys(self):
        with pytest.raises(pydantic.ValidationError):
            ProcessorOptions(batch=10)

    def test_camel_case_aliases(self):
        options = ProcessorOptions.model_validate({"batchSize": 50, "useWorkers": False, "logLevel": "WARNING"})

        assert options.overrides() == {"batch_size": 50, "use_workers": False, "log_level": "warn"}

    def test_config_is_frozen(self):
        config = ProcessorConfig()

        with pytest.raises(pydantic.ValidationError):
            config.batch_size = 10

    def test_options_override_defaults(self):
        config = ProcessorConfig.from_options(
            {"batch_size": 300, "use_workers": True}, ProcessorOptions(batch_size=25)
        )

        assert config.batch_size == 25
        assert config.use_workers is True
        assert "engineer" in config.destinations

    def test_database_connection_strings(self):
        db = DatabaseConfig(host=" db ", port=5433, user="u", password="p", database_name="metrics")

        assert db.get_connection_string() == "postgresql://u:p@db:5433/metrics"
        assert db.get_dsn() == "postgresql://u:p@db:5433/metrics"


class TestConfigLoader:
    """Environment mapping and precedence."""

    def test_environment_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("INGEST_BATCH_SIZE", "123")
        monkeypatch.setenv("INGEST_USE_WORKERS", "false")
        monkeypatch.setenv("INGEST_LOG_LEVEL", "debug")
        loader = ConfigLoader(env_file=str(tmp_path / "missing.env"))

        config = loader.build_processor_config()

        assert config.batch_size == 123
        assert config.use_workers is False
        assert config.log_level == "debug"

    def test_explicit_options_win(self, monkeypatch, tmp_path):
        monkeypatch.setenv("INGEST_BATCH_SIZE", "123")
        loader = ConfigLoader(env_file=str(tmp_path / "missing.env"))

        config = loader.build_processor_config(ProcessorOptions(batch_size=7))

        assert config.batch_size == 7

    def test_env_file_is_loaded(self, monkeypatch, tmp_path):
        monkeypatch.delenv("POSTGRES_HOST", raising=False)
        monkeypatch.delenv("POSTGRES_DBNAME", raising=False)
        env_file = tmp_path / ".env"
        env_file.write_text("POSTGRES_HOST=warehouse\nPOSTGRES_DBNAME=metrics\n")

        try:
            db = ConfigLoader(env_file=str(env_file)).load_database_config()
        finally:
            os.environ.pop("POSTGRES_HOST", None)
            os.environ.pop("POSTGRES_DBNAME", None)

        assert db.host == "warehouse"
        assert db.database_name == "metrics"

    def test_pool_config(self, monkeypatch, tmp_path):
        monkeypatch.setenv("INGEST_ASYNC_POOL_MAX_SIZE", "4")

        pool = ConfigLoader(env_file=str(tmp_path / "missing.env")).load_pool_config()

        assert pool.max_size == 4

    @pytest.mark.parametrize("raw,expected", [("true", True), ("1", True), ("OFF", False), ("no", False)])
    def test_parse_bool(self, raw, expected):
        assert parse_bool(raw) is expected

    def test_parse_bool_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_bool("maybe")


class TestProfiles:
    def test_apply_profile_keeps_existing_values(self, monkeypatch):
        monkeypatch.setenv("INGEST_LOG_LEVEL", "info")
        monkeypatch.delenv("INGEST_USE_WORKERS", raising=False)
        monkeypatch.delenv("INGEST_USE_PG_COPY_STREAM", raising=False)
        monkeypatch.delenv("INGEST_ASYNC_POOL_MAX_SIZE", raising=False)
        monkeypatch.delenv("ENVIRONMENT", raising=False)

        applied = apply_profile("testing")
        for name in applied:
            os.environ.pop(name, None)

        assert "INGEST_LOG_LEVEL" not in applied
        assert "INGEST_USE_WORKERS" in applied

    def test_unknown_profile(self):
        with pytest.raises(ValueError):
            ConfigurationProfile.get_profile("staging")
