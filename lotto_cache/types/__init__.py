"""
Type definitions and data models for the caching engine.
"""

from .models import (
    # Cache types
    CacheEntry,
    CacheStats,
    CacheOperation,
    efficiency_percent,
    ENTRY_FORMAT_VERSION,

    # Configuration types
    CacheSettings,
    NamespaceConfig,
    default_namespaces,

    # Domain types
    DomainEvent,

    # Logging types
    LogEntry,
    LogLevel
)

__all__ = [
    'CacheEntry',
    'CacheStats',
    'CacheOperation',
    'efficiency_percent',
    'ENTRY_FORMAT_VERSION',
    'CacheSettings',
    'NamespaceConfig',
    'default_namespaces',
    'DomainEvent',
    'LogEntry',
    'LogLevel'
]
