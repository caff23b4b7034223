"""
Type definitions and protocols for ndview.

This module provides the layout value type, enums, protocols and
aliases used throughout the library.
"""

from .descriptors import Layout, make_shape, packed_strides, prod, as_coords
from .enums import (
    TraversalOrder,
    Ownership,
    StoreLifecycleState
)
from .protocols import (
    IBackingStore,
    IAllocator,
    INDArray
)
from .aliases import (
    Shape,
    Strides,
    Coords,
    Address,
    ByteSize
)

__all__ = [
    # Descriptors
    "Layout",
    "make_shape",
    "packed_strides",
    "prod",
    "as_coords",

    # Enums
    "TraversalOrder",
    "Ownership",
    "StoreLifecycleState",

    # Protocols
    "IBackingStore",
    "IAllocator",
    "INDArray",

    # Type aliases
    "Shape",
    "Strides",
    "Coords",
    "Address",
    "ByteSize",
]
