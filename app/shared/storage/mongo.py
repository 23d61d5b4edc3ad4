"""
MongoDB client manager that creates and tracks motor clients per label.
"""

import threading

from loguru import logger
from motor.motor_asyncio import AsyncIOMotorClient

from ..config import config


class MongoManager:
    """
    Simple MongoDB client manager.

    Connection strings are discovered from MONGO_URL_<LABEL> configuration keys;
    the `default` label falls back to MONGO_URL_DEFAULT / MONGO_URL / localhost.
    Clients are created lazily and cached per label.
    """

    _instance = None
    _lock = threading.Lock()

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if hasattr(self, "_initialized"):
            return

        self._clients: dict[str, AsyncIOMotorClient] = {}
        self._connection_strings: dict[str, str] = {}
        self._max_pool_size = config.get_mongo_max_pool_size()
        self._server_selection_timeout = config.get_mongo_server_selection_timeout()
        self._connect_timeout = config.get_mongo_connect_timeout()
        self._socket_timeout = config.get_mongo_socket_timeout()
        self._clients_lock = threading.Lock()

        self._load_connection_strings()
        self._initialized = True

    def _load_connection_strings(self):
        for key, value in config.items():
            if not key.startswith("MONGO_URL_") or not value:
                continue
            label = key[len("MONGO_URL_"):].lower()
            self._connection_strings[label] = value
            logger.info(
                "Loaded MongoDB connection string for label '{}': {}",
                label,
                self._hide_password_in_connection_string(value),
            )

        if "default" not in self._connection_strings:
            self._connection_strings["default"] = config.get_mongo_url("default")

    @staticmethod
    def _hide_password_in_connection_string(connection_string: str) -> str:
        if "://" not in connection_string or "@" not in connection_string:
            return connection_string
        protocol_part, rest = connection_string.split("://", 1)
        auth_part, _, host_part = rest.rpartition("@")
        if ":" not in auth_part:
            return connection_string
        username, _ = auth_part.split(":", 1)
        return f"{protocol_part}://{username}:***@{host_part}"

    def get_client(self, label: str | None = None) -> AsyncIOMotorClient:
        label = label or "default"

        with self._clients_lock:
            if label not in self._clients:
                if label not in self._connection_strings:
                    raise ValueError(f"No MongoDB connection string found for label '{label}'")

                logger.info("Open MongoDB client for label '{}'", label)
                self._clients[label] = AsyncIOMotorClient(
                    self._connection_strings[label],
                    serverSelectionTimeoutMS=self._server_selection_timeout,
                    connectTimeoutMS=self._connect_timeout,
                    socketTimeoutMS=self._socket_timeout,
                    maxPoolSize=self._max_pool_size,
                    tz_aware=True,
                )
            return self._clients[label]

    def close_all(self):
        with self._clients_lock:
            labels = list(self._clients.keys())
            for label in labels:
                self._clients.pop(label).close()
                logger.info("Closed MongoDB client for label '{}'", label)


def get_mongo_client(label: str | None = None) -> AsyncIOMotorClient:
    return MongoManager().get_client(label)


def close_mongo_clients():
    MongoManager().close_all()
