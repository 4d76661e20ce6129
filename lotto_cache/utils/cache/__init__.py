"""
Cache utilities for efficient data storage and retrieval.

This module provides the TTL cache store, its persistence layer and the
key builders shared by every cached query.
"""

from .keys import CacheKeys, CachePatterns, CACHE_TTL_MINUTES, business_today, iso_week, monthly_total_ttl, week_start
from .persistence import JsonFileMedium, KeyValueMedium, MemoryMedium, PersistenceAdapter
from .store import CacheStore

__all__ = [
    'CacheStore',
    'PersistenceAdapter',
    'KeyValueMedium',
    'JsonFileMedium',
    'MemoryMedium',
    'CacheKeys',
    'CachePatterns',
    'CACHE_TTL_MINUTES',
    'business_today',
    'iso_week',
    'monthly_total_ttl',
    'week_start'
]
