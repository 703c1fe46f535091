from __future__ import annotations

import json
import logging
from typing import Any, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from casetracker.errors import StorageError
from casetracker.storage.models import KeyValueRecord

logger = logging.getLogger(__name__)

USERS_KEY = "users"
CURRENT_USER_KEY = "current_user"
CASES_KEY = "cases"
NOTIFICATION_SETTINGS_KEY = "notification_settings"
NOTIFIED_CASES_KEY = "notified_cases"


class KeyValueStore(Protocol):
    """String-keyed persistent store holding serialized documents."""

    def get(self, key: str) -> str | None:
        """Return the stored value, or None when the key is absent."""

    def set(self, key: str, value: str) -> None:
        """Persist the value, raising StorageError when it cannot be written."""

    def delete(self, key: str) -> None:
        """Remove the key if present."""


class MemoryKeyValueStore(KeyValueStore):
    """
    Process-local store.

    `quota_bytes` caps the total size of stored values, mimicking a browser storage quota so
    capacity failures can be exercised without a real backend.
    """

    def __init__(self, quota_bytes: int | None = None) -> None:
        self._values: dict[str, str] = {}
        self.quota_bytes = quota_bytes

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        if self.quota_bytes is not None:
            used = sum(len(item) for name, item in self._values.items() if name != key)
            if used + len(value) > self.quota_bytes:
                raise StorageError(f"Storage quota exceeded writing {key!r}")
        self._values[key] = value

    def delete(self, key: str) -> None:
        self._values.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._values)


class SqlKeyValueStore(KeyValueStore):
    """Durable store backed by the `kv_entries` table."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self.session_factory = session_factory

    def get(self, key: str) -> str | None:
        with self.session_factory() as session:
            record = session.get(KeyValueRecord, key)
            return record.value if record is not None else None

    def set(self, key: str, value: str) -> None:
        try:
            with self.session_factory() as session:
                session.merge(KeyValueRecord(key=key, value=value))
                session.commit()
        except SQLAlchemyError as exc:
            raise StorageError(f"Unable to write {key!r}: {exc}") from exc

    def delete(self, key: str) -> None:
        try:
            with self.session_factory() as session:
                record = session.get(KeyValueRecord, key)
                if record is not None:
                    session.delete(record)
                    session.commit()
        except SQLAlchemyError as exc:
            raise StorageError(f"Unable to delete {key!r}: {exc}") from exc


def read_json(store: KeyValueStore, key: str, default: Any) -> Any:
    """Decode a stored JSON document, falling back to `default` when absent or corrupt."""

    raw = store.get(key)
    if raw is None:
        return default
    try:
        return json.loads(raw)
    except ValueError:
        logger.warning("Discarding unreadable stored record", extra={"key": key})
        return default


def write_json(store: KeyValueStore, key: str, value: Any) -> None:
    store.set(key, json.dumps(value, separators=(",", ":")))
