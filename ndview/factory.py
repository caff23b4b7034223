from __future__ import annotations
import logging
from functools import lru_cache
from typing import Any, Iterable, Optional

import numpy as np
import torch

from .core.dense import DenseView
from .core.sparse import SparseView
from .memory.allocators import StoreAllocator
from .memory.segments import BackingStore
from .types.aliases import ByteSize
from .types.descriptors import Layout, make_shape, prod
from .types.enums import TraversalOrder
from .types.protocols import IAllocator
from .exceptions import InvalidShape, NonContiguous, SizeMismatch, StoreError

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_default_allocator() -> StoreAllocator:
    return StoreAllocator()


def create_allocator(**kwargs) -> StoreAllocator:
    return StoreAllocator(**kwargs)


def create_bounded_allocator(max_bytes: int, **kwargs) -> StoreAllocator:
    return StoreAllocator(max_bytes=ByteSize(max_bytes), **kwargs)


def _allocate_view(
    shape: Iterable[int],
    dtype: Any,
    allocator: Optional[IAllocator],
    order: TraversalOrder
) -> DenseView:
    shape = make_shape(shape)
    allocator = allocator or get_default_allocator()
    dtype = allocator.dtype if dtype is None else np.dtype(dtype)
    store = allocator.acquire(ByteSize(prod(shape) * dtype.itemsize), dtype)
    return DenseView(store, Layout.create(shape, order), owned=True)


def zeros(
    shape: Iterable[int],
    dtype: Any = None,
    allocator: Optional[IAllocator] = None,
    order: TraversalOrder = TraversalOrder.ROW_MAJOR
) -> DenseView:
    return _allocate_view(shape, dtype, allocator, order)


def full(
    shape: Iterable[int],
    value: Any,
    dtype: Any = None,
    allocator: Optional[IAllocator] = None,
    order: TraversalOrder = TraversalOrder.ROW_MAJOR
) -> DenseView:
    view = _allocate_view(shape, dtype, allocator, order)
    try:
        view.fill(value)
    except Exception:
        view.release()
        raise
    return view


def ones(
    shape: Iterable[int],
    dtype: Any = None,
    allocator: Optional[IAllocator] = None,
    order: TraversalOrder = TraversalOrder.ROW_MAJOR
) -> DenseView:
    return full(shape, 1, dtype=dtype, allocator=allocator, order=order)


def sequential_fill(
    shape: Iterable[int],
    start: int = 0,
    dtype: Any = None,
    allocator: Optional[IAllocator] = None,
    order: TraversalOrder = TraversalOrder.ROW_MAJOR
) -> DenseView:
    """View filled with ``start, start + 1, ...`` in row-major logical order."""
    view = _allocate_view(shape, dtype, allocator, order)
    try:
        view.assign(np.arange(start, start + view.size).reshape(view.shape))
    except Exception:
        view.release()
        raise
    return view


def sparse_zeros(shape: Iterable[int], dtype: Any = None) -> SparseView:
    return SparseView(shape, fill_value=0, dtype=dtype)


def from_buffer(
    buffer: Any,
    shape: Optional[Iterable[int]] = None,
    dtype: Any = None,
    order: TraversalOrder = TraversalOrder.ROW_MAJOR
) -> DenseView:
    """Borrowed view over externally owned memory."""
    store = BackingStore.borrow(buffer, dtype)
    shape = (store.length,) if shape is None else make_shape(shape)
    if prod(shape) > store.length:
        raise SizeMismatch(
            f"Shape {shape} needs {prod(shape)} elements, buffer holds {store.length}",
            expected=prod(shape), actual=store.length
        )
    return DenseView(store, Layout.create(shape, order))


def from_nested(
    rows: Any,
    dtype: Any = None,
    allocator: Optional[IAllocator] = None
) -> DenseView:
    """Owned copy of a nested sequence."""
    try:
        source = np.asarray(rows, dtype=dtype)
    except ValueError as e:
        raise InvalidShape(f"Nested sequence is not rectangular: {e}") from e
    view = _allocate_view(source.shape, source.dtype, allocator, TraversalOrder.ROW_MAJOR)
    try:
        view.assign(source)
    except Exception:
        view.release()
        raise
    return view


def from_numpy(array: np.ndarray) -> DenseView:
    """Borrowed view over a numpy array, keeping its strides."""
    itemsize = array.dtype.itemsize
    if any(s % itemsize for s in array.strides):
        raise NonContiguous(f"Strides {array.strides} are not whole {array.dtype} elements")

    shape = array.shape
    strides = tuple(s // itemsize for s in array.strides)
    if array.size == 0:
        return DenseView(BackingStore(np.empty(0, dtype=array.dtype)), Layout.create(shape))

    low, high = Layout(shape, strides).span()
    flat = array.reshape(1) if array.ndim == 0 else array
    lowest = flat[tuple(
        slice(n - 1, n) if s < 0 else slice(0, 1)
        for n, s in zip(flat.shape, flat.strides)
    )]
    memory = np.lib.stride_tricks.as_strided(
        lowest,
        shape=(high - low + 1,),
        strides=(itemsize,),
        writeable=array.flags.writeable
    )
    logger.debug("Borrowed numpy array of shape %s with strides %s", shape, strides)
    return DenseView(BackingStore(memory), Layout(shape, strides, -low))


def from_torch(tensor: torch.Tensor) -> DenseView:
    """Borrowed view over the memory of a CPU tensor."""
    if tensor.device.type != 'cpu':
        raise StoreError(f"Cannot borrow memory of a {tensor.device.type} tensor")
    return from_numpy(tensor.detach().numpy())
