"""
Key-value storage for the issuer: pending login flows and authorization codes.
Values are JSON-serializable dicts. Entries past their TTL read as absent.
"""
import json
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from sqlalchemy import delete
from sqlalchemy.orm import Session

from auth_worker.models import KeyValue


class KeyValueStorage:
    """Interface the issuer stores its state through."""

    def get(self, key: str) -> dict[str, Any] | None:
        raise NotImplementedError

    def set(self, key: str, value: dict[str, Any], ttl: int | None = None) -> None:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError

    def pop(self, key: str) -> dict[str, Any] | None:
        """Read and remove. Used for single-use values (authorization codes)."""
        value = self.get(key)
        if value is not None:
            self.remove(key)
        return value


class MemoryStorage(KeyValueStorage):
    """Process-local storage. Single worker / tests only."""

    def __init__(self):
        self._data: dict[str, tuple[str, float | None]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> dict[str, Any] | None:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            raw, expires_at = entry
            if expires_at is not None and time.monotonic() >= expires_at:
                del self._data[key]
                return None
            return json.loads(raw)

    def set(self, key: str, value: dict[str, Any], ttl: int | None = None) -> None:
        expires_at = time.monotonic() + ttl if ttl is not None else None
        with self._lock:
            self._sweep_expired()
            self._data[key] = (json.dumps(value), expires_at)

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def _sweep_expired(self) -> None:
        # Caller holds the lock. Abandoned flows are never read again, so writes evict them.
        now = time.monotonic()
        expired = [k for k, (_, expires_at) in self._data.items() if expires_at is not None and now >= expires_at]
        for k in expired:
            del self._data[k]

    def pop(self, key: str) -> dict[str, Any] | None:
        # Atomic under the lock so a code can't be redeemed twice by racing requests
        with self._lock:
            entry = self._data.pop(key, None)
        if entry is None:
            return None
        raw, expires_at = entry
        if expires_at is not None and time.monotonic() >= expires_at:
            return None
        return json.loads(raw)


def _utc_now() -> datetime:
    # Naive UTC; SQLite DateTime columns drop tzinfo
    return datetime.now(timezone.utc).replace(tzinfo=None)


class DatabaseStorage(KeyValueStorage):
    """Storage in the kv_store table; shared by every worker using the same database."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def get(self, key: str) -> dict[str, Any] | None:
        with self._session_factory() as db:
            row = db.get(KeyValue, key)
            if row is None:
                return None
            if row.expires_at is not None and row.expires_at <= _utc_now():
                db.delete(row)
                db.commit()
                return None
            return json.loads(row.value)

    def set(self, key: str, value: dict[str, Any], ttl: int | None = None) -> None:
        expires_at = _utc_now() + timedelta(seconds=ttl) if ttl is not None else None
        with self._session_factory() as db:
            # Abandoned flows are never read again, so writes evict them
            db.execute(delete(KeyValue).where(KeyValue.expires_at <= _utc_now()))
            db.merge(KeyValue(key=key, value=json.dumps(value), expires_at=expires_at))
            db.commit()

    def remove(self, key: str) -> None:
        with self._session_factory() as db:
            db.execute(delete(KeyValue).where(KeyValue.key == key))
            db.commit()

    def pop(self, key: str) -> dict[str, Any] | None:
        # Only the request whose DELETE removed the row gets the value
        with self._session_factory() as db:
            row = db.get(KeyValue, key)
            if row is None:
                return None
            raw, expires_at = row.value, row.expires_at
            deleted = db.execute(delete(KeyValue).where(KeyValue.key == key)).rowcount
            db.commit()
        if deleted != 1:
            return None
        if expires_at is not None and expires_at <= _utc_now():
            return None
        return json.loads(raw)

    def purge_expired(self) -> int:
        """Delete expired rows; returns how many were removed."""
        with self._session_factory() as db:
            result = db.execute(delete(KeyValue).where(KeyValue.expires_at <= _utc_now()))
            db.commit()
            return result.rowcount
