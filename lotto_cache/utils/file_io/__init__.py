"""
File I/O utilities for cache persistence.
"""

from lotto_cache.utils.file_io.atomic_writer import AtomicWriter

__all__ = ['AtomicWriter']
