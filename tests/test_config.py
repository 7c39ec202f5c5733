"""
Tests for configuration loading
"""

import shutil
import tempfile
from pathlib import Path

import pytest

from watchdog.events import DirModifiedEvent, FileModifiedEvent, FileMovedEvent

from librosphere.config import ConfigFileWatcher, ConfigManager, ENV_USERNAME, ENV_PASSWORD


@pytest.fixture(autouse=True)
def clear_credential_env(monkeypatch):
    monkeypatch.delenv(ENV_USERNAME, raising=False)
    monkeypatch.delenv(ENV_PASSWORD, raising=False)


class TestConfigManager:
    """Test ConfigManager"""

    def setup_method(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.config_path = self.temp_dir / "librosphere.yaml"

    def teardown_method(self):
        shutil.rmtree(self.temp_dir)

    def write(self, text: str):
        self.config_path.write_text(text, encoding="utf-8")

    def test_missing_file_gives_defaults(self):
        config = ConfigManager(str(self.config_path)).load_config()

        assert config.server.port == 8080
        assert config.auth.username == ""
        assert config.storage.backend == "filesystem"
        assert config.cache.ttl == 604800
        assert config.rateLimit.maxRequestsPerMinute == 60
        assert config.rateLimit.cleanupThreshold == 1000
        assert config.ui.language == "en"
        assert config.hotReload.enabled is False

    def test_parse_sections(self):
        self.write(
            "server:\n"
            "  addr: 127.0.0.1\n"
            "  port: 9000\n"
            "auth:\n"
            "  username: reader\n"
            "  password: 12345\n"
            "storage:\n"
            "  backend: memory\n"
            "cache:\n"
            "  enabled: false\n"
            "  ttl: 30\n"
            "rateLimit:\n"
            "  maxRequestsPerMinute: 5\n"
            "ui:\n"
            "  language: zh\n"
        )
        config = ConfigManager(str(self.config_path)).load_config()

        assert config.server.addr == "127.0.0.1"
        assert config.server.port == 9000
        assert config.auth.username == "reader"
        # YAML numbers are coerced to strings for credentials
        assert config.auth.password == "12345"
        assert config.storage.backend == "memory"
        assert config.cache.enabled is False
        assert config.cache.ttl == 30
        assert config.cache.clientMaxAge == 3600
        assert config.rateLimit.maxRequestsPerMinute == 5
        assert config.ui.language == "zh"

    def test_empty_sections(self):
        self.write("server:\nauth:\n")
        config = ConfigManager(str(self.config_path)).load_config()
        assert config.server.port == 8080
        assert config.auth.realm == "LibroSphere"

    def test_broken_yaml_gives_defaults(self):
        self.write("server: [unclosed\n")
        config = ConfigManager(str(self.config_path)).load_config()
        assert config.server.port == 8080

    def test_env_overrides_file(self, monkeypatch):
        self.write("auth:\n  username: from-file\n  password: from-file\n")
        monkeypatch.setenv(ENV_USERNAME, "from-env")
        monkeypatch.setenv(ENV_PASSWORD, "secret-env")

        config = ConfigManager(str(self.config_path)).load_config()
        assert config.auth.username == "from-env"
        assert config.auth.password == "secret-env"

    def test_env_applies_without_file(self, monkeypatch):
        monkeypatch.setenv(ENV_PASSWORD, "only-env")
        config = ConfigManager(str(self.config_path)).load_config()
        assert config.auth.password == "only-env"

    def test_reload_callbacks(self):
        self.write("ui:\n  language: en\n")
        manager = ConfigManager(str(self.config_path))
        manager.load_config()

        seen = []
        manager.add_reload_callback(lambda old, new: seen.append((old.ui.language, new.ui.language)))

        self.write("ui:\n  language: zh\n")
        manager._on_config_changed()

        assert seen == [("en", "zh")]
        assert manager.get_config().ui.language == "zh"

    def test_failing_callback_does_not_stop_reload(self):
        manager = ConfigManager(str(self.config_path))
        manager.load_config()

        def broken(old, new):
            raise RuntimeError("boom")

        seen = []
        manager.add_reload_callback(broken)
        manager.add_reload_callback(lambda old, new: seen.append(new))
        manager._on_config_changed()

        assert len(seen) == 1

    def test_watching_disabled_by_default(self):
        manager = ConfigManager(str(self.config_path))
        manager.load_config()
        manager.start_watching()
        assert manager.observer is None


class TestConfigFileWatcher:
    """Test ConfigFileWatcher event filtering"""

    def setup_method(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.config_path = self.temp_dir / "librosphere.yaml"
        self.config_path.write_text("ui:\n  language: en\n", encoding="utf-8")
        self.calls = []
        self.watcher = ConfigFileWatcher(self.config_path, lambda: self.calls.append(1), debounce_ms=0)

    def teardown_method(self):
        shutil.rmtree(self.temp_dir)

    def test_modified_config_triggers(self):
        self.watcher.on_any_event(FileModifiedEvent(str(self.config_path)))
        assert self.calls == [1]

    def test_other_files_ignored(self):
        self.watcher.on_any_event(FileModifiedEvent(str(self.temp_dir / "other.yaml")))
        self.watcher.on_any_event(DirModifiedEvent(str(self.temp_dir)))
        assert self.calls == []

    def test_rename_over_config_triggers(self):
        """Editors that save through a temporary file"""

        tmp = str(self.temp_dir / ".librosphere.yaml.swp")
        self.watcher.on_any_event(FileMovedEvent(tmp, str(self.config_path)))
        assert self.calls == [1]

    def test_debounce(self):
        watcher = ConfigFileWatcher(self.config_path, lambda: self.calls.append(1), debounce_ms=60000)
        watcher.on_any_event(FileModifiedEvent(str(self.config_path)))
        watcher.on_any_event(FileModifiedEvent(str(self.config_path)))
        assert self.calls == [1]
