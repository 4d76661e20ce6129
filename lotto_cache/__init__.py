"""
Client-side caching engine for the lottery retail application.

Typical use::

    from lotto_cache import CacheManager, CacheRegistry, CacheKeys, load_config

    registry = CacheRegistry(load_config())
    manager = CacheManager(registry)
    total = registry.sales.get_or_compute(CacheKeys.daily_total(day), fetch_total)
"""

from .core import (
    CacheError,
    CacheManager,
    CacheRegistry,
    ConfigManager,
    ConfigurationError,
    DataPersistenceError,
    InvalidPatternError,
    LottoCacheError,
    ValidationError,
    load_config
)
from .types import CacheEntry, CacheSettings, CacheStats, DomainEvent, NamespaceConfig
from .utils.cache import CacheKeys, CachePatterns, CacheStore, JsonFileMedium, MemoryMedium, PersistenceAdapter

__version__ = "1.0.0"
