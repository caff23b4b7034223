"""
ndview - Strided N-dimensional views over shared memory

A view layer describing N-dimensional arrays as a shape plus a stride
vector over a flat backing store.

Key Features:
- Zero-copy derived views: sub-slices, transposes, diagonals, windows, blocks
- Aliasing read/write through element references
- Lazy, sliceable element iteration in logical order
- Sparse views that only materialize non-default entries
- Allocator with scoped acquire/release of owned stores
- Zero-copy numpy and torch interop
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Core components
from .core.dense import DenseView
from .core.sparse import SparseView
from .core.iterator import ElementIterator
from .core.reference import ElementRef, SparseElementRef

# Memory
from .memory.segments import BackingStore
from .memory.allocators import StoreAllocator, DEFAULT_DTYPE

# Construction
from .factory import (
    zeros,
    ones,
    full,
    sequential_fill,
    sparse_zeros,
    from_buffer,
    from_nested,
    from_numpy,
    from_torch,
    get_default_allocator,
    create_allocator,
    create_bounded_allocator
)

# Types
from .types.descriptors import Layout, make_shape, packed_strides
from .types.enums import TraversalOrder, Ownership, StoreLifecycleState
from .types.protocols import IBackingStore, IAllocator, INDArray

# Exceptions
from .exceptions import (
    NDViewError,
    ViewError,
    InvalidShape,
    OutOfRange,
    InvalidPermutation,
    NonContiguous,
    SizeMismatch,
    InvalidWindow,
    IndivisibleShape,
    InvalidValue,
    IteratorExhausted,
    StoreError,
    AllocationFailure,
    UseAfterRelease,
    OwnershipError
)

# Public API
__all__ = [
    # Core components
    "DenseView",
    "SparseView",
    "ElementIterator",
    "ElementRef",
    "SparseElementRef",

    # Memory
    "BackingStore",
    "StoreAllocator",
    "DEFAULT_DTYPE",

    # Construction
    "zeros",
    "ones",
    "full",
    "sequential_fill",
    "sparse_zeros",
    "from_buffer",
    "from_nested",
    "from_numpy",
    "from_torch",
    "get_default_allocator",
    "create_allocator",
    "create_bounded_allocator",

    # Types
    "Layout",
    "make_shape",
    "packed_strides",
    "TraversalOrder",
    "Ownership",
    "StoreLifecycleState",
    "IBackingStore",
    "IAllocator",
    "INDArray",

    # Exceptions
    "NDViewError",
    "ViewError",
    "InvalidShape",
    "OutOfRange",
    "InvalidPermutation",
    "NonContiguous",
    "SizeMismatch",
    "InvalidWindow",
    "IndivisibleShape",
    "InvalidValue",
    "IteratorExhausted",
    "StoreError",
    "AllocationFailure",
    "UseAfterRelease",
    "OwnershipError",
]

# Version info
VERSION_INFO = tuple(map(int, __version__.split('.')))

def get_version() -> str:
    """Get the current version string."""
    return __version__

def get_version_info() -> tuple[int, ...]:
    """Get version as tuple of integers."""
    return VERSION_INFO
