"""
Memory management components for ndview.

This module provides the backing store and the allocator that hands
out owned stores with scoped acquire/release.
"""

from .segments import BackingStore
from .allocators import StoreAllocator, DEFAULT_DTYPE

__all__ = [
    "BackingStore",
    "StoreAllocator",
    "DEFAULT_DTYPE",
]
