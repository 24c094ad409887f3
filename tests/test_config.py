"""Tests for configuration loading and validation."""

from pathlib import Path

import pytest

from logsieve.config import (
    DEFAULT_LOCAL_STORE_PORT,
    LocalStoreOptions,
    LogsieveConfig,
    StoreConnectionInfo,
    load_config,
)
from logsieve.exceptions import ConfigurationError, InvalidConfigError


class TestDefaults:
    def test_directories_derive_from_app_dir(self, tmp_path):
        config = LogsieveConfig(app_dir=str(tmp_path))
        assert config.temp_path == tmp_path / "temp"
        assert config.output_path == tmp_path / "output"
        assert config.publish_path == tmp_path / "published"
        assert config.store_path == tmp_path / "store"
        assert config.local_store_root == tmp_path / "local_store"
        assert config.plugin_output_database == tmp_path / "output" / "plugin_output.db"

    def test_explicit_directory_wins(self, tmp_path):
        config = LogsieveConfig(app_dir=str(tmp_path), temp_dir=str(tmp_path / "scratch"))
        assert config.temp_path == tmp_path / "scratch"

    def test_store_connection_has_no_process(self, tmp_path):
        info = LogsieveConfig(app_dir=str(tmp_path)).store_connection
        assert info.host is None and info.port is None
        assert info.data_path == tmp_path / "store"

    def test_local_store_defaults(self):
        options = LocalStoreOptions()
        assert options.port == DEFAULT_LOCAL_STORE_PORT
        assert options.purge_on_startup is True


class TestValidation:
    def test_batch_size(self):
        with pytest.raises(InvalidConfigError):
            LogsieveConfig(batch_size=0)

    def test_verbosity(self):
        with pytest.raises(InvalidConfigError):
            LogsieveConfig(verbosity="loud")

    def test_local_store_port(self):
        with pytest.raises(InvalidConfigError):
            LocalStoreOptions(port=70000)

    def test_connection_requires_data_dir(self):
        with pytest.raises(InvalidConfigError):
            StoreConnectionInfo(data_dir="")

    def test_connection_str(self):
        info = StoreConnectionInfo(data_dir="/data", host="127.0.0.1", port=27018)
        assert str(info) == "127.0.0.1:27018//data"


class TestLoadConfig:
    def test_defaults(self):
        config = load_config()
        assert config.drop_after_run is False
        assert config.default_plugins == ["default"]

    def test_project_file(self, tmp_path):
        (tmp_path / "logsieve.toml").write_text(
            'app_dir = "/srv/logsieve"\n'
            "drop_after_run = true\n"
            "[store]\n"
            'data_dir = "/srv/store"\n'
            "[local_store]\n"
            "port = 28000\n"
        )
        config = load_config()
        assert config.app_dir == "/srv/logsieve"
        assert config.drop_after_run is True
        assert config.store_path == Path("/srv/store")
        assert config.local_store.port == 28000

    def test_explicit_file_overrides_project_file(self, tmp_path):
        (tmp_path / "logsieve.toml").write_text("batch_size = 10\n")
        explicit = tmp_path / "other.toml"
        explicit.write_text("batch_size = 20\n")
        assert load_config(config_file=explicit).batch_size == 20

    def test_global_file(self, tmp_path):
        (Path.home() / ".logsieve.toml").write_text("batch_size = 7\n")
        assert load_config().batch_size == 7

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        (tmp_path / "logsieve.toml").write_text("batch_size = 10\n")
        monkeypatch.setenv("LOGSIEVE_BATCH_SIZE", "50")
        monkeypatch.setenv("LOGSIEVE_DROP_AFTER_RUN", "yes")
        config = load_config()
        assert config.batch_size == 50
        assert config.drop_after_run is True

    def test_invalid_env_value(self, monkeypatch):
        monkeypatch.setenv("LOGSIEVE_DROP_AFTER_RUN", "maybe")
        with pytest.raises(InvalidConfigError):
            load_config()

    def test_overrides_win_and_none_is_ignored(self, monkeypatch):
        monkeypatch.setenv("LOGSIEVE_BATCH_SIZE", "50")
        config = load_config(batch_size=5, drop_after_run=None)
        assert config.batch_size == 5
        assert config.drop_after_run is False

    def test_local_store_override_merges(self, tmp_path):
        (tmp_path / "logsieve.toml").write_text("[local_store]\nport = 28000\n")
        config = load_config(local_store={"purge_on_startup": False, "port": None})
        assert config.local_store.port == 28000
        assert config.local_store.purge_on_startup is False

    def test_verbose_flag(self):
        assert load_config(verbose=True).verbosity == "verbose"
        assert load_config(quiet=True).verbosity == "quiet"
        assert load_config(verbose=False, quiet=False).verbosity == "normal"

    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_config(config_file=tmp_path / "nope.toml")

    def test_malformed_file(self, tmp_path):
        bad = tmp_path / "bad.toml"
        bad.write_text("this is = = not toml")
        with pytest.raises(ConfigurationError):
            load_config(config_file=bad)

    def test_unknown_key(self, tmp_path):
        bad = tmp_path / "bad.toml"
        bad.write_text("no_such_option = 1\n")
        with pytest.raises(ConfigurationError):
            load_config(config_file=bad)
