"""
Centralized environment configuration.

Sources, later overriding earlier:
1) `env.example` (committed, safe placeholders)
2) `env.local` (optional, MUST NOT be committed)
3) System environment variables (highest priority)
"""

import os
from pathlib import Path

from dotenv import dotenv_values
from loguru import logger


class EnvironConfig:
    """
    Singleton configuration class that loads environment variables from env files
    and system environment, providing dictionary-like access with default values.
    """

    _instance = None
    _initialized = False

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(EnvironConfig, cls).__new__(cls)
        return cls._instance

    def __init__(self):
        if not self._initialized:
            self._config = {}
            self._load_config()
            EnvironConfig._initialized = True

    def _load_config(self):
        root = Path(__file__).parent.parent.parent

        example_path = root / "env.example"
        if example_path.exists():
            self._config.update(dotenv_values(example_path))
            logger.info("Loaded environment variables from {}", example_path)

        local_path = root / "env.local"
        if local_path.exists():
            self._config.update(dotenv_values(local_path))
            logger.info("Loaded and overrode environment variables from {}", local_path)

        self._config.update(os.environ)

    def __getitem__(self, key):
        if key not in self._config:
            raise KeyError(f"Configuration key '{key}' not found")
        return self._config[key]

    def get(self, key, default=None):
        """Get configuration value by key, falling back to `default` when missing."""
        return self._config.get(key, default)

    def reload(self):
        """Reload configuration from files and environment."""
        self._config.clear()
        self._load_config()
        logger.info("Configuration reloaded")

    def __contains__(self, key):
        return key in self._config

    def __iter__(self):
        return iter(self._config)

    def keys(self):
        return self._config.keys()

    def items(self):
        return self._config.items()

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self.get(key)
        if value is None or not str(value).strip():
            return default
        return str(value).strip().lower() in {"true", "1", "yes", "on"}

    def get_int(self, key: str, default: int) -> int:
        try:
            return int(str(self.get(key, default)).strip())
        except (ValueError, TypeError):
            logger.warning("Invalid {} value '{}', defaulting to {}", key, self.get(key), default)
            return default

    def get_float(self, key: str, default: float) -> float:
        try:
            return float(str(self.get(key, default)).strip())
        except (ValueError, TypeError):
            logger.warning("Invalid {} value '{}', defaulting to {}", key, self.get(key), default)
            return default

    def get_mongo_url(self, label: str = "default") -> str:
        """
        Get MongoDB connection URL for a specific label.

        The default label reads MONGO_URL_DEFAULT, then MONGO_URL, then falls back
        to localhost. Other labels read MONGO_URL_<LABEL>.
        """
        if label == "default":
            return (
                self.get("MONGO_URL_DEFAULT")
                or self.get("MONGO_URL")
                or "mongodb://localhost:27017"
            )
        return self.get(f"MONGO_URL_{label.upper()}") or ""

    def get_mongo_max_pool_size(self) -> int:
        size = self.get_int("MONGO_MAX_POOL_SIZE", 5)
        if 1 <= size <= 100:
            return size
        logger.warning("MONGO_MAX_POOL_SIZE value {} is out of range (1-100), defaulting to 5", size)
        return 5

    def get_mongo_server_selection_timeout(self) -> int:
        timeout = self.get_int("MONGO_SERVER_SELECTION_TIMEOUT", 30000)
        return timeout if timeout > 0 else 30000

    def get_mongo_connect_timeout(self) -> int:
        timeout = self.get_int("MONGO_CONNECT_TIMEOUT", 30000)
        return timeout if timeout > 0 else 30000

    def get_mongo_socket_timeout(self) -> int:
        timeout = self.get_int("MONGO_SOCKET_TIMEOUT", 300000)
        return timeout if timeout > 0 else 300000


# Global configuration instance
config = EnvironConfig()
