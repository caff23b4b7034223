"""
Enumeration types for ndview.

This module defines the enumeration types used for layout order
and backing store lifecycle management.
"""

from enum import IntEnum


class TraversalOrder(IntEnum):
    """Which dimension varies fastest in memory for a packed layout."""
    ROW_MAJOR = 1
    COLUMN_MAJOR = 2


class Ownership(IntEnum):
    """How a view relates to the lifetime of its backing store."""
    BORROWED = 1
    OWNED = 2


class StoreLifecycleState(IntEnum):
    """Backing store lifecycle states."""
    ACTIVE = 1
    RELEASED = 2
