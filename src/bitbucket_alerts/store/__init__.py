"""Alert persistence on top of a whole-value key-value store."""

from .alerts import (
    ALERTS_KEY,
    APP_PASSWORD_KEY,
    REQUIRE_INTERACTION_KEY,
    USERNAME_KEY,
    encode_auth_token,
    get_auth_token,
    load_alerts,
    read_credentials,
    read_require_interaction,
    save_alerts,
    write_credentials,
    write_require_interaction,
)
from .backends import JsonFileStore, KeyValueStore, MemoryStore

__all__ = [
    "ALERTS_KEY",
    "APP_PASSWORD_KEY",
    "REQUIRE_INTERACTION_KEY",
    "USERNAME_KEY",
    "JsonFileStore",
    "KeyValueStore",
    "MemoryStore",
    "encode_auth_token",
    "get_auth_token",
    "load_alerts",
    "read_credentials",
    "read_require_interaction",
    "save_alerts",
    "write_credentials",
    "write_require_interaction",
]
