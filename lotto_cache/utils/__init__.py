"""
Utility modules for the lotto caching engine.

This package provides:
- Caching with TTL, eviction and persistence
- Structured logging with performance monitoring
- Atomic file writes
"""

from .cache import *
from .logging import *
from .file_io import *
