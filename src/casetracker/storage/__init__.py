from .database import create_session_factory, init_db
from .kv import (
    CASES_KEY,
    CURRENT_USER_KEY,
    NOTIFICATION_SETTINGS_KEY,
    NOTIFIED_CASES_KEY,
    USERS_KEY,
    KeyValueStore,
    MemoryKeyValueStore,
    SqlKeyValueStore,
    read_json,
    write_json,
)
from .models import Base, KeyValueRecord

__all__ = [
    "Base",
    "KeyValueRecord",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "SqlKeyValueStore",
    "CASES_KEY",
    "CURRENT_USER_KEY",
    "NOTIFICATION_SETTINGS_KEY",
    "NOTIFIED_CASES_KEY",
    "USERS_KEY",
    "create_session_factory",
    "init_db",
    "read_json",
    "write_json",
]
