"""
Structured logging system with performance monitoring.

This module provides JSON-structured logging with configurable levels,
contextual information, and performance timing capabilities.
"""

from .structured_logger import StructuredLogger, ContextLogger, timed

__all__ = [
    'StructuredLogger',
    'ContextLogger',
    'timed'
]
