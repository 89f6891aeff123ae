"""
Credential Store

Key-value persistence of AccountRecord, one entry per identifier.
put() always replaces the whole record; get() raises AccountNotFoundError.

Backends:
- InMemoryCredentialStore: process-local, for tests and demos
- JsonFileCredentialStore: single JSON document, durable across restarts
- PostgresCredentialStore (db.postgres): shared table via psycopg2
"""

import os
import json
import tempfile
import threading
from pathlib import Path
from typing import Dict, Optional

from ..core.config import settings, Settings
from ..core.exceptions import AccountNotFoundError, DatabaseQueryError
from ..core.logger import get_logger
from .models import AccountRecord, normalize_identifier

logger = get_logger(__name__)

DEFAULT_KEY_PREFIX = "account:"


class CredentialStore:
    """
    Abstract store interface. Subclasses implement _read/_write by key.
    """

    def __init__(self, key_prefix: str = DEFAULT_KEY_PREFIX):
        self.key_prefix = key_prefix

    def key_for(self, identifier: str) -> str:
        """Derive the store key for an identifier."""
        return f"{self.key_prefix}{normalize_identifier(identifier)}"

    def get(self, identifier: str) -> AccountRecord:
        key = self.key_for(identifier)
        data = self._read(key)
        if data is None:
            raise AccountNotFoundError(normalize_identifier(identifier))
        return AccountRecord.from_dict(data)

    def put(self, identifier: str, record: AccountRecord) -> None:
        normalized = normalize_identifier(identifier)
        if record.identifier != normalized:
            raise ValueError(
                f"Record identifier {record.identifier!r} does not match key {normalized!r}"
            )
        self._write(self.key_for(normalized), record.to_dict())
        logger.info(f"Stored account record for {normalized}")

    def _read(self, key: str) -> Optional[dict]:
        raise NotImplementedError

    def _write(self, key: str, data: dict) -> None:
        raise NotImplementedError


class InMemoryCredentialStore(CredentialStore):
    """Dict-backed store, lives as long as the process."""

    def __init__(self, key_prefix: str = DEFAULT_KEY_PREFIX):
        super().__init__(key_prefix)
        self._records: Dict[str, dict] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._records)

    def _read(self, key: str) -> Optional[dict]:
        with self._lock:
            data = self._records.get(key)
            return json.loads(json.dumps(data)) if data is not None else None

    def _write(self, key: str, data: dict) -> None:
        with self._lock:
            self._records[key] = json.loads(json.dumps(data))


class JsonFileCredentialStore(CredentialStore):
    """
    Stores all records in one JSON document on disk.

    Every write rewrites the file through a temp file + os.replace, so a
    reader never sees a half-written document.
    """

    def __init__(self, file_path: str, key_prefix: str = DEFAULT_KEY_PREFIX):
        super().__init__(key_prefix)
        self.file_path = Path(file_path)
        self._lock = threading.Lock()

    def _load(self) -> Dict[str, dict]:
        if not self.file_path.exists():
            return {}
        try:
            with open(self.file_path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise DatabaseQueryError(f"Failed to read {self.file_path}", details=str(e)) from e

    def _save(self, records: Dict[str, dict]) -> None:
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self.file_path.parent), prefix=".accounts-", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(records, f, indent=2, sort_keys=True)
            os.replace(tmp_path, self.file_path)
        except OSError as e:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise DatabaseQueryError(f"Failed to write {self.file_path}", details=str(e)) from e

    def __len__(self) -> int:
        with self._lock:
            return len(self._load())

    def _read(self, key: str) -> Optional[dict]:
        with self._lock:
            return self._load().get(key)

    def _write(self, key: str, data: dict) -> None:
        with self._lock:
            records = self._load()
            records[key] = data
            self._save(records)


def create_store(config: Optional[Settings] = None) -> CredentialStore:
    """
    Build the configured store backend. Call once at process start.
    """
    config = config or settings
    backend = config.store.backend
    prefix = config.store.key_prefix

    if backend == "memory":
        logger.warning("Using in-memory credential store; records are lost on exit")
        return InMemoryCredentialStore(prefix)

    if backend == "file":
        logger.info(f"Using credential file {config.store.file_path}")
        return JsonFileCredentialStore(config.store.file_path, prefix)

    if backend == "postgres":
        from .postgres import PostgresCredentialStore
        store = PostgresCredentialStore(config.database, prefix)
        store.ensure_schema()
        return store

    raise ValueError(f"Unknown store backend: {backend}")


__all__ = [
    "DEFAULT_KEY_PREFIX",
    "CredentialStore",
    "InMemoryCredentialStore",
    "JsonFileCredentialStore",
    "create_store",
]
