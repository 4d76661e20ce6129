"""
Namespace registry: the set of cache stores one process works with.

A registry is constructed explicitly from ``CacheSettings`` and handed to
whatever needs it (services, the ``CacheManager``, the monitor CLI). Tests
build their own registry with an in-memory medium and a fake clock.
"""

import time
from typing import Callable, Dict, Iterator, List, Optional, Tuple, Union

from ..types.models import CacheSettings, LogLevel
from ..utils.cache.persistence import JsonFileMedium, KeyValueMedium, PersistenceAdapter
from ..utils.cache.store import CacheStore
from ..utils.logging import StructuredLogger
from .exceptions import CacheError


class CacheRegistry:
    """
    One ``CacheStore`` per configured namespace.

    Persistent stores share a single key-value medium; each one writes under
    its own ``<key_prefix><namespace>:`` prefix so clearing a namespace never
    touches another.

    Attributes:
        settings (CacheSettings): Settings the stores were built from
        medium (Optional[KeyValueMedium]): Shared durable medium, None when memory-only
    """

    def __init__(
        self,
        settings: Optional[CacheSettings] = None,
        medium: Optional[KeyValueMedium] = None,
        clock: Callable[[], float] = time.time,
        logger: Optional[StructuredLogger] = None
    ):
        """
        Build every namespace store.

        Args:
            settings: Cache settings (defaults to ``CacheSettings()``)
            medium: Durable medium; defaults to a ``JsonFileMedium`` at
                    ``settings.storage_path``, or none when that is None
            clock: Time source shared by every store
            logger: Logger instance (optional)

        Raises:
            ValueError: If the settings are invalid
        """
        self.settings = settings or CacheSettings()
        self.settings.validate()

        self.logger = logger or StructuredLogger(
            "cache_registry",
            level=self.settings.log_level,
            log_dir=self.settings.log_dir
        )

        if medium is None and self.settings.storage_path:
            medium = JsonFileMedium(
                self.settings.storage_path,
                backups=self.settings.storage_backups
            )
        self.medium = medium

        self._stores: Dict[str, CacheStore] = {}
        for name, namespace in self.settings.namespaces.items():
            adapter = None
            if namespace.persistent and self.medium is not None:
                adapter = PersistenceAdapter(
                    self.medium,
                    prefix=f"{self.settings.key_prefix}{name}:",
                    logger=self.logger.with_context(namespace=name)
                )
            self._stores[name] = CacheStore(
                name,
                max_size=namespace.max_size,
                default_ttl_minutes=namespace.default_ttl_minutes,
                persistent=namespace.persistent,
                adapter=adapter,
                cleanup_interval=self.settings.cleanup_interval,
                clock=clock,
                logger=StructuredLogger(
                    f"cache_store.{name}",
                    level=self.settings.log_level,
                    log_dir=self.settings.log_dir
                )
            )

        self.logger.info(
            "Cache registry initialized",
            namespaces=",".join(self._stores),
            persistence='file' if self.medium is not None else 'memory'
        )

    def get(self, name: str) -> CacheStore:
        """
        Look up a namespace store.

        Raises:
            CacheError: If the namespace is not configured
        """
        try:
            return self._stores[name]
        except KeyError:
            raise CacheError(
                f"Unknown cache namespace: {name!r}",
                operation="GET_NAMESPACE",
                namespace=name
            ) from None

    def __getitem__(self, name: str) -> CacheStore:
        return self.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._stores

    def __iter__(self) -> Iterator[Tuple[str, CacheStore]]:
        return iter(list(self._stores.items()))

    def __len__(self) -> int:
        return len(self._stores)

    def names(self) -> List[str]:
        return list(self._stores)

    @property
    def sales(self) -> CacheStore:
        return self.get('sales')

    @property
    def finances(self) -> CacheStore:
        return self.get('finances')

    @property
    def user(self) -> CacheStore:
        return self.get('user')

    @property
    def dashboard(self) -> CacheStore:
        return self.get('dashboard')

    def set_log_level(self, level: Union[LogLevel, str]) -> None:
        """
        Change the log level of the registry and every store.

        Raises:
            ValueError: If invalid log level is provided
        """
        self.logger.set_level(level)
        for store in self._stores.values():
            store.logger.set_level(level)

    def destroy(self) -> None:
        """Stop every cleanup thread and drop in-memory state; persisted mirrors remain."""
        for store in self._stores.values():
            store.destroy()
        self.logger.info("Cache registry destroyed", namespaces=len(self._stores))
