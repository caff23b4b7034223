"""
Backing store implementation for ndview.

A backing store is a flat, typed element buffer. Views address it by
element index; the store itself knows nothing about shapes or strides.
"""

from __future__ import annotations
import logging
from typing import Any, Optional, TYPE_CHECKING

import numpy as np
import torch

from ..types.aliases import Address, ByteSize
from ..types.enums import StoreLifecycleState
from ..exceptions import UseAfterRelease, NonContiguous, StoreError, InvalidValue

if TYPE_CHECKING:
    from .allocators import StoreAllocator

logger = logging.getLogger(__name__)


class BackingStore:
    """Flat element buffer shared by any number of views."""

    __slots__ = ('_array', '_dtype', '_length', '_state', '_allocator', '__weakref__')

    def __init__(self, array: np.ndarray, allocator: Optional[StoreAllocator] = None):
        if array.ndim != 1:
            raise StoreError(f"Backing array must be flat, got {array.ndim} dimensions")
        self._array = array
        self._dtype = array.dtype
        self._length = array.shape[0]
        self._state = StoreLifecycleState.ACTIVE
        self._allocator = allocator

    @classmethod
    def borrow(cls, buffer: Any, dtype: Any = None) -> BackingStore:
        """Wrap externally owned memory without copying.

        Accepts a contiguous numpy array, a contiguous CPU torch tensor or any
        object exposing the buffer protocol. The store never frees the memory.
        """
        if isinstance(buffer, torch.Tensor):
            if buffer.device.type != 'cpu':
                raise StoreError(f"Cannot borrow memory of a {buffer.device.type} tensor")
            if not buffer.is_contiguous():
                raise NonContiguous("Cannot borrow a non-contiguous tensor")
            array = buffer.detach().view(-1).numpy()
        elif isinstance(buffer, np.ndarray):
            if not (buffer.flags.c_contiguous or buffer.flags.f_contiguous):
                raise NonContiguous("Cannot borrow a non-contiguous array")
            array = buffer.ravel(order='K')
        else:
            array = np.frombuffer(buffer, dtype=dtype if dtype is not None else np.uint8)

        if dtype is not None and array.dtype != np.dtype(dtype):
            raise StoreError(f"Buffer dtype {array.dtype} does not match requested {np.dtype(dtype)}")

        logger.debug("Borrowed %d elements of %s", array.shape[0], array.dtype)
        return cls(array)

    @property
    def dtype(self) -> np.dtype:
        return self._dtype

    @property
    def length(self) -> int:
        return self._length

    @property
    def nbytes(self) -> ByteSize:
        return ByteSize(self._length * self._dtype.itemsize)

    @property
    def allocator(self) -> Optional[StoreAllocator]:
        return self._allocator

    @property
    def is_borrowed(self) -> bool:
        return self._allocator is None

    @property
    def is_released(self) -> bool:
        return self._state == StoreLifecycleState.RELEASED

    @property
    def array(self) -> np.ndarray:
        """The flat numpy buffer backing this store."""
        self._check_alive()
        return self._array

    def read(self, address: Address) -> Any:
        self._check_alive()
        return self._array[address]

    def write(self, address: Address, value: Any) -> None:
        self._check_alive()
        try:
            self._array[address] = value
        except (ValueError, TypeError, OverflowError) as e:
            raise InvalidValue(
                f"Cannot store {value!r} as {self._dtype}: {e}", dtype=str(self._dtype)
            ) from e

    def _check_alive(self) -> None:
        if self._state == StoreLifecycleState.RELEASED:
            raise UseAfterRelease("Backing store has been released")

    def _mark_released(self) -> None:
        self._state = StoreLifecycleState.RELEASED
        self._array = None

    def __repr__(self) -> str:
        kind = "borrowed" if self.is_borrowed else "owned"
        return (
            f"BackingStore(length={self._length}, dtype={self._dtype}, "
            f"{kind}, state={self._state.name})"
        )
