"""
Core module for the lotto caching engine.

This module contains the core infrastructure components including:
- Custom exception classes for better error categorization
- Configuration management system
- The namespace registry and the cross-namespace cache manager
"""

from .exceptions import (
    LottoCacheError,
    ConfigurationError,
    DataPersistenceError,
    ValidationError,
    CacheError,
    InvalidPatternError
)
from .config import ConfigManager, load_config
from .registry import CacheRegistry
from .manager import CacheManager

__all__ = [
    # Registry, manager and configuration
    'CacheRegistry',
    'CacheManager',
    'ConfigManager',
    'load_config',

    # Exception classes
    'LottoCacheError',
    'ConfigurationError',
    'DataPersistenceError',
    'ValidationError',
    'CacheError',
    'InvalidPatternError'
]
