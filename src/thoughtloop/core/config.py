"""Configuration management.

Loads and merges configuration from multiple sources with proper precedence.
"""

import json
import os
from contextvars import ContextVar, Token
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from .config_loader import deep_merge, load_json_file
from .config_schema import (
    Config,
    DetectorConfig,
    LoggingConfig,
    RetryConfig,
    ServerConfig,
)
from .global_paths import GlobalPath
from ..util.log import Log

log = Log.create({"service": "config"})

__all__ = [
    "Config",
    "ConfigError",
    "ConfigManager",
    "DetectorConfig",
    "LoggingConfig",
    "RetryConfig",
    "ServerConfig",
]

CONFIG_FILENAMES = ["thoughtloop.json", "thoughtloop.jsonc"]
ENV_CONTENT = "THOUGHTLOOP_CONFIG_CONTENT"


class ConfigError(Exception):
    """Configuration error."""

    def __init__(self, path: str, message: str):
        self.path = path
        super().__init__(f"Config error in {path}: {message}")


_config_var: ContextVar['ConfigManager'] = ContextVar('_config_var')


class ConfigManager:
    """Configuration management.

    Instance-based with ContextVar for scoping. Class methods delegate
    to the current instance.

    Sources, lowest to highest precedence:
    1. Global config (``<user config dir>/thoughtloop.json``)
    2. Project configs (``thoughtloop.json`` from filesystem root down to cwd)
    3. ``THOUGHTLOOP_CONFIG_CONTENT`` environment variable
    """

    def __init__(self) -> None:
        self._cache: Optional[Config] = None
        self._sources: List[str] = []

    @classmethod
    def current(cls) -> 'ConfigManager':
        try:
            return _config_var.get()
        except LookupError:
            instance = cls()
            _config_var.set(instance)
            return instance

    @classmethod
    def provide(cls, instance: 'ConfigManager') -> Token['ConfigManager']:
        return _config_var.set(instance)

    @classmethod
    def restore(cls, token: Token['ConfigManager']) -> None:
        _config_var.reset(token)

    @classmethod
    def reset(cls) -> None:
        """Reset cached configuration."""
        inst = cls.current()
        inst._cache = None
        inst._sources = []

    @classmethod
    async def load(cls, directory: str = ".") -> Config:
        return await cls.current()._load(directory)

    @classmethod
    async def get(cls) -> Config:
        inst = cls.current()
        if inst._cache is None:
            return await inst._load()
        return inst._cache

    @classmethod
    def sources(cls) -> List[str]:
        """Files and variables the cached config was merged from."""
        return cls.current()._sources.copy()

    async def _load(self, directory: str = ".") -> Config:
        if self._cache is not None:
            return self._cache

        result: Dict[str, Any] = {}
        sources: List[str] = []

        # 1. Global config
        global_config_dir = GlobalPath.config()
        for filename in ["config.json", *CONFIG_FILENAMES]:
            filepath = os.path.join(global_config_dir, filename)
            data = load_json_file(filepath)
            if data:
                result = deep_merge(result, data)
                sources.append(filepath)
                log.info("loaded global config", {"path": filepath})

        # 2. Project config (search up from directory)
        current = Path(directory).resolve()
        project_configs: List[str] = []
        while True:
            for filename in CONFIG_FILENAMES:
                filepath = current / filename
                if filepath.is_file():
                    project_configs.append(str(filepath))
            if current == current.parent:
                break
            current = current.parent

        for filepath in reversed(project_configs):
            data = load_json_file(filepath)
            if data:
                result = deep_merge(result, data)
                sources.append(filepath)
                log.info("loaded project config", {"path": filepath})

        # 3. Environment variable config
        env_config = os.environ.get(ENV_CONTENT)
        if env_config:
            try:
                data = json.loads(env_config)
            except json.JSONDecodeError:
                log.error(f"failed to parse {ENV_CONTENT}")
            else:
                if isinstance(data, dict):
                    result = deep_merge(result, data)
                    sources.append(ENV_CONTENT)
                    log.info(f"loaded config from {ENV_CONTENT}")

        try:
            config = Config.model_validate(result)
        except ValidationError as e:
            origin = sources[-1] if sources else "<defaults>"
            raise ConfigError(origin, str(e)) from e

        self._sources = sources
        self._cache = config
        return self._cache
