"""
Best-effort durability for cache stores.

A persistent ``CacheStore`` mirrors every set/delete/clear to a key-value
medium through a ``PersistenceAdapter`` and reloads unexpired entries when
it is constructed again. Persistence is an optimization only: every medium
failure is logged and swallowed, and the in-memory store stays
authoritative.
"""

import json
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from lotto_cache.core.exceptions import DataPersistenceError
from lotto_cache.types.models import CacheEntry
from lotto_cache.utils.file_io.atomic_writer import AtomicWriter
from lotto_cache.utils.logging import StructuredLogger

# Anything the medium or the JSON codec can throw at us
PERSISTENCE_ERRORS = (DataPersistenceError, OSError, TypeError, ValueError)


class KeyValueMedium(ABC):
    """String-to-string storage shared by every persistent store in a process."""

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        """Return the stored value or None."""

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``."""

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """Remove ``key``; missing keys are ignored."""

    @abstractmethod
    def keys(self) -> List[str]:
        """All stored keys."""

    def remove_many(self, keys: List[str]) -> None:
        for key in keys:
            self.remove_item(key)


class MemoryMedium(KeyValueMedium):
    """
    In-process medium.

    ``max_items`` makes the medium refuse new keys once full, the same way a
    quota-limited browser storage does.
    """

    def __init__(self, max_items: Optional[int] = None):
        self.max_items = max_items
        self._items: Dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        if (
            self.max_items is not None
            and key not in self._items
            and len(self._items) >= self.max_items
        ):
            raise DataPersistenceError(
                "Storage quota exceeded",
                operation="set_item",
                original_error=None
            )
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._items.keys())


class JsonFileMedium(KeyValueMedium):
    """
    Medium backed by a single JSON document on disk.

    The document is read lazily and rewritten atomically after every
    mutation. Other processes (a second app instance, the monitor CLI) may
    write the same file, so the document is read again whenever the file
    on disk no longer matches what this instance last read or wrote.
    """

    def __init__(
        self,
        path: Union[str, Path],
        writer: Optional[AtomicWriter] = None,
        backups: int = 0
    ):
        self.path = Path(path)
        self.backups = backups
        self.writer = writer or AtomicWriter(backup_retention_count=backups)
        self._items: Optional[Dict[str, str]] = None
        self._seen: Optional[Tuple[int, int, int]] = None
        self._lock = threading.RLock()

    def _file_signature(self) -> Optional[Tuple[int, int, int]]:
        try:
            stat = self.path.stat()
        except FileNotFoundError:
            return None
        return (stat.st_ino, stat.st_mtime_ns, stat.st_size)

    def _load(self) -> Dict[str, str]:
        signature = self._file_signature()
        if self._items is not None and signature == self._seen:
            return self._items

        self._seen = signature
        if signature is None:
            self._items = {}
            return self._items

        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                document = json.load(f)
        except (OSError, ValueError) as e:
            # Start over with an empty document; the next write replaces the bad file
            self._items = {}
            raise DataPersistenceError(
                f"Failed to read cache storage: {e}",
                file_path=str(self.path),
                operation="read",
                original_error=e
            ) from e

        if not isinstance(document, dict):
            self._items = {}
            raise DataPersistenceError(
                "Cache storage document is not a JSON object",
                file_path=str(self.path),
                operation="read"
            )

        self._items = {str(k): v for k, v in document.items() if isinstance(v, str)}
        return self._items

    def _flush(self) -> None:
        self.writer.write_atomic(
            self.path,
            json.dumps(self._items),
            create_backup=self.backups > 0
        )
        self._seen = self._file_signature()

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._load().get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            self._load()[key] = value
            self._flush()

    def remove_item(self, key: str) -> None:
        with self._lock:
            items = self._load()
            if key in items:
                del items[key]
                self._flush()

    def remove_many(self, keys: List[str]) -> None:
        with self._lock:
            items = self._load()
            removed = [key for key in keys if items.pop(key, None) is not None]
            if removed:
                self._flush()

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._load().keys())


class PersistenceAdapter:
    """
    Mirrors one store's entries under ``prefix`` in a key-value medium.

    Attributes:
        medium (KeyValueMedium): Durable storage
        prefix (str): Storage key prefix, unique per namespace
    """

    def __init__(
        self,
        medium: KeyValueMedium,
        prefix: str,
        logger: Optional[StructuredLogger] = None
    ):
        self.medium = medium
        self.prefix = prefix
        self.logger = logger or StructuredLogger("cache_persistence")

    def storage_key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def persist(self, key: str, entry: CacheEntry) -> bool:
        """Write ``entry``; returns False when the medium refused it."""
        try:
            self.medium.set_item(self.storage_key(key), json.dumps(entry.to_storage()))
            return True
        except PERSISTENCE_ERRORS as e:
            self.logger.warning("Failed to persist cache entry", error=e, cache_key=key, prefix=self.prefix)
            return False

    def remove(self, key: str) -> None:
        try:
            self.medium.remove_item(self.storage_key(key))
        except PERSISTENCE_ERRORS as e:
            self.logger.warning("Failed to remove persisted entry", error=e, cache_key=key, prefix=self.prefix)

    def remove_many(self, keys: List[str]) -> None:
        try:
            self.medium.remove_many([self.storage_key(key) for key in keys])
        except PERSISTENCE_ERRORS as e:
            self.logger.warning("Failed to remove persisted entries", error=e, count=len(keys), prefix=self.prefix)

    def clear(self) -> None:
        """Remove every key under this adapter's prefix, and nothing else."""
        try:
            self.medium.remove_many(self._prefixed_keys())
        except PERSISTENCE_ERRORS as e:
            self.logger.warning("Failed to clear persisted entries", error=e, prefix=self.prefix)

    def _prefixed_keys(self) -> List[str]:
        return [key for key in self.medium.keys() if key.startswith(self.prefix)]

    def load(self, now: float, limit: Optional[int] = None) -> Dict[str, CacheEntry]:
        """
        Read back every unexpired entry under the prefix.

        Expired, corrupt and unknown-version entries are removed from the
        medium. Entries beyond ``limit`` are dropped as well so a shrunken
        namespace does not keep stale mirrors around.

        Args:
            now: Current time in epoch seconds
            limit: Maximum number of entries to admit

        Returns:
            Mapping of cache key to entry, in medium order
        """
        loaded: Dict[str, CacheEntry] = {}
        try:
            storage_keys = self._prefixed_keys()
        except PERSISTENCE_ERRORS as e:
            self.logger.warning("Failed to read persisted cache", error=e, prefix=self.prefix)
            return loaded

        stale: List[str] = []
        skipped = 0
        for storage_key in storage_keys:
            key = storage_key[len(self.prefix):]
            try:
                raw = self.medium.get_item(storage_key)
                if raw is None:
                    continue
                entry = CacheEntry.from_storage(json.loads(raw))
            except (KeyError, AttributeError) + PERSISTENCE_ERRORS as e:
                self.logger.debug("Skipping unreadable persisted entry", error=e, cache_key=key)
                stale.append(storage_key)
                skipped += 1
                continue

            if entry.is_expired(now) or (limit is not None and len(loaded) >= limit):
                stale.append(storage_key)
                continue
            loaded[key] = entry

        if stale:
            try:
                self.medium.remove_many(stale)
            except PERSISTENCE_ERRORS as e:
                self.logger.warning("Failed to prune persisted entries", error=e, prefix=self.prefix)

        self.logger.debug(
            "Loaded persisted cache entries",
            prefix=self.prefix,
            loaded=len(loaded),
            pruned=len(stale),
            skipped=skipped
        )
        return loaded
