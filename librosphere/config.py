"""
Configuration loading and management for LibroSphere
"""

import yaml
import logging
import os
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
from watchdog.observers import Observer
from watchdog.events import FileSystemEvent, FileSystemEventHandler

from .models import (
    Config, ServerConfig, TlsConfig, AuthConfig, StorageConfig, CacheConfig,
    LoggingConfig, RateLimitConfig, UiConfig, HotReloadConfig
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "librosphere.yaml"

# Credentials are usually injected by the deployment rather than written to the file
ENV_USERNAME = "LIBROSPHERE_USERNAME"
ENV_PASSWORD = "LIBROSPHERE_PASSWORD"

ReloadCallback = Callable[[Optional[Config], Config], None]


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    # "server:" with nothing under it parses as None
    value = data.get(name)
    return value if isinstance(value, dict) else {}


def _parse_server(data: Dict[str, Any]) -> ServerConfig:
    tls = _section(data, 'tls')
    return ServerConfig(
        addr=data.get('addr', '0.0.0.0'),
        port=int(data.get('port', 8080)),
        tls=TlsConfig(
            enabled=bool(tls.get('enabled', False)),
            certfile=tls.get('certfile', ''),
            keyfile=tls.get('keyfile', ''),
        ),
    )


def _parse_auth(data: Dict[str, Any]) -> AuthConfig:
    # YAML turns an all-digit password into an int
    return AuthConfig(
        username=str(data.get('username', '')),
        password=str(data.get('password', '')),
        realm=data.get('realm', 'LibroSphere'),
    )


def _parse_storage(data: Dict[str, Any]) -> StorageConfig:
    return StorageConfig(
        backend=data.get('backend', 'filesystem'),
        path=str(data.get('path', 'data/objects')),
    )


def _parse_cache(data: Dict[str, Any]) -> CacheConfig:
    return CacheConfig(
        enabled=bool(data.get('enabled', True)),
        ttl=int(data.get('ttl', 604800)),
        clientMaxAge=int(data.get('clientMaxAge', 3600)),
    )


def _parse_logging(data: Dict[str, Any]) -> LoggingConfig:
    return LoggingConfig(
        json=bool(data.get('json', True)),
        file=data.get('file', ''),
        level=data.get('level', 'INFO'),
        max_size_mb=int(data.get('max_size_mb', 100)),
        backup_count=int(data.get('backup_count', 5)),
    )


def _parse_rate_limit(data: Dict[str, Any]) -> RateLimitConfig:
    return RateLimitConfig(
        enabled=bool(data.get('enabled', True)),
        maxRequestsPerMinute=int(data.get('maxRequestsPerMinute', 60)),
        cleanupThreshold=int(data.get('cleanupThreshold', 1000)),
    )


def _parse_ui(data: Dict[str, Any]) -> UiConfig:
    return UiConfig(
        brand=data.get('brand', 'LibroSphere'),
        title=data.get('title', 'LibroSphere'),
        language=data.get('language', 'en'),
        assetDir=data.get('assetDir', ''),
    )


def _parse_hot_reload(data: Dict[str, Any]) -> HotReloadConfig:
    return HotReloadConfig(
        enabled=bool(data.get('enabled', False)),
        watchConfig=bool(data.get('watchConfig', True)),
        debounceMs=int(data.get('debounceMs', 1000)),
    )


# YAML section name -> (Config attribute, parser)
SECTION_PARSERS = {
    'server': ('server', _parse_server),
    'auth': ('auth', _parse_auth),
    'storage': ('storage', _parse_storage),
    'cache': ('cache', _parse_cache),
    'logging': ('logging', _parse_logging),
    'rateLimit': ('rateLimit', _parse_rate_limit),
    'ui': ('ui', _parse_ui),
    'hotReload': ('hotReload', _parse_hot_reload),
}


def parse_config(data: Dict[str, Any]) -> Config:
    """Build a Config from the decoded YAML document"""
    sections = {
        attr: parser(_section(data, name))
        for name, (attr, parser) in SECTION_PARSERS.items()
    }
    return Config(**sections)


class ConfigFileWatcher(FileSystemEventHandler):
    """Calls back when the watched file is written, created or renamed into place"""

    def __init__(self, config_path: Path, callback: Callable[[], None], debounce_ms: int = 1000):
        self.config_path = config_path.resolve()
        self.callback = callback
        self.debounce_ms = debounce_ms
        self._last_fired = float("-inf")

    def _targets_config(self, event: FileSystemEvent) -> bool:
        if event.is_directory:
            return False
        # Editors often save via a temp file renamed over the original
        paths = [event.src_path, getattr(event, 'dest_path', '')]
        return any(p and Path(p).resolve() == self.config_path for p in paths)

    def on_any_event(self, event: FileSystemEvent):
        if event.event_type not in ('modified', 'created', 'moved'):
            return
        if not self._targets_config(event):
            return

        now = time.monotonic() * 1000
        if now - self._last_fired < self.debounce_ms:
            return
        self._last_fired = now

        logger.info(f"Configuration file changed: {self.config_path}")
        try:
            self.callback()
        except Exception as e:
            logger.error(f"Failed to reload configuration: {e}")


class ConfigManager:
    """Owns the current Config and reloads it when the file changes"""

    def __init__(self, config_path: str = DEFAULT_CONFIG_PATH):
        self.config_path = Path(config_path).resolve()
        self.config: Optional[Config] = None
        self.observer: Optional[Observer] = None
        self.reload_callbacks: List[ReloadCallback] = []

    def _read_file(self) -> Config:
        if not self.config_path.exists():
            logger.warning(f"Configuration file not found: {self.config_path}, using defaults")
            return Config()

        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                raise ValueError("top level of the configuration must be a mapping")
            config = parse_config(data)
        except Exception as e:
            logger.error(f"Failed to load configuration {self.config_path}: {e}")
            return Config()

        logger.info(f"Configuration loaded from {self.config_path}")
        return config

    def load_config(self) -> Config:
        """Read the file, apply environment overrides and make it current"""
        config = self._read_file()
        apply_env_overrides(config)
        self.config = config
        return config

    def get_config(self) -> Config:
        if self.config is None:
            return self.load_config()
        return self.config

    def add_reload_callback(self, callback: ReloadCallback):
        self.reload_callbacks.append(callback)

    def remove_reload_callback(self, callback: ReloadCallback):
        if callback in self.reload_callbacks:
            self.reload_callbacks.remove(callback)

    def _on_config_changed(self):
        previous = self.config
        current = self.load_config()

        for callback in list(self.reload_callbacks):
            try:
                callback(previous, current)
            except Exception as e:
                logger.error(f"Configuration reload callback {getattr(callback, '__name__', callback)} failed: {e}")

        logger.info("Configuration reloaded")

    def start_watching(self):
        """Watch the configuration file when hot reload is enabled"""
        hot_reload = self.get_config().hotReload
        if not (hot_reload.enabled and hot_reload.watchConfig) or self.observer is not None:
            return

        handler = ConfigFileWatcher(self.config_path, self._on_config_changed, hot_reload.debounceMs)
        observer = Observer()
        try:
            observer.schedule(handler, str(self.config_path.parent), recursive=False)
            observer.start()
        except Exception as e:
            logger.error(f"Failed to start configuration file watcher: {e}")
            return

        self.observer = observer
        logger.info(f"Watching configuration file: {self.config_path}")

    def stop_watching(self):
        if self.observer is None:
            return
        self.observer.stop()
        self.observer.join()
        self.observer = None
        logger.info("Stopped watching configuration file")


def apply_env_overrides(config: Config):
    """Environment variables take precedence over the file"""
    username = os.getenv(ENV_USERNAME)
    if username is not None:
        config.auth.username = username

    password = os.getenv(ENV_PASSWORD)
    if password is not None:
        config.auth.password = password


def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> Config:
    """Load configuration from file"""
    return ConfigManager(config_path).load_config()
