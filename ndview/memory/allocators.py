from __future__ import annotations
import logging
from contextlib import contextmanager
from threading import RLock
from typing import Any, Dict, Iterator, Optional, Set

import numpy as np

from ..types.aliases import ByteSize
from ..exceptions import AllocationFailure, UseAfterRelease, OwnershipError
from .segments import BackingStore

logger = logging.getLogger(__name__)

DEFAULT_DTYPE = np.dtype(np.int64)


class StoreAllocator:
    """Allocator handing out owned backing stores with paired release."""

    __slots__ = (
        '_max_bytes', '_dtype', '_alignment', '_live', '_lock', '_closed',
        '_allocation_count', '_release_count', '_bytes_in_use', '_peak_bytes'
    )

    def __init__(
        self,
        max_bytes: Optional[ByteSize] = None,
        dtype: Any = DEFAULT_DTYPE,
        alignment: int = 64
    ):
        if alignment <= 0 or (alignment & (alignment - 1)) != 0:
            raise ValueError(f"Alignment must be a positive power of 2: {alignment}")
        if max_bytes is not None and max_bytes < 0:
            raise ValueError(f"Invalid memory limit: {max_bytes}")

        self._max_bytes = max_bytes
        self._dtype = np.dtype(dtype)
        self._alignment = alignment

        self._live: Set[BackingStore] = set()
        self._lock = RLock()
        self._closed = False

        self._allocation_count = 0
        self._release_count = 0
        self._bytes_in_use = 0
        self._peak_bytes = 0

    def _aligned_size(self, size: int) -> ByteSize:
        return ByteSize((size + self._alignment - 1) & ~(self._alignment - 1))

    def acquire(self, byte_size: ByteSize, dtype: Any = None) -> BackingStore:
        """Allocate a zero-initialized store of ``byte_size`` bytes."""
        dtype = self._dtype if dtype is None else np.dtype(dtype)

        if byte_size < 0 or byte_size % dtype.itemsize != 0:
            raise AllocationFailure(
                f"Size {byte_size} is not a multiple of the {dtype} item size {dtype.itemsize}",
                requested_size=byte_size
            )

        aligned = self._aligned_size(byte_size)

        with self._lock:
            if self._closed:
                raise AllocationFailure("Allocator is closed", requested_size=byte_size)

            if self._max_bytes is not None and self._bytes_in_use + aligned > self._max_bytes:
                raise AllocationFailure(
                    f"Cannot allocate {aligned} bytes: {self._bytes_in_use} of "
                    f"{self._max_bytes} bytes in use",
                    requested_size=byte_size
                )

            try:
                array = np.zeros(byte_size // dtype.itemsize, dtype=dtype)
            except (MemoryError, ValueError) as e:
                raise AllocationFailure(
                    f"Failed to allocate {byte_size} bytes: {e}", requested_size=byte_size
                ) from e

            store = BackingStore(array, allocator=self)
            self._live.add(store)
            self._allocation_count += 1
            self._bytes_in_use += aligned
            self._peak_bytes = max(self._peak_bytes, self._bytes_in_use)

        logger.debug("Acquired %d bytes of %s (%d stores live)", byte_size, dtype, len(self._live))
        return store

    def release(self, store: BackingStore) -> None:
        """Release a store acquired from this allocator. Exactly once."""
        with self._lock:
            if store not in self._live:
                if store.is_released:
                    raise UseAfterRelease("Backing store has already been released")
                raise OwnershipError("Backing store was not acquired from this allocator")

            self._live.remove(store)
            self._release_count += 1
            self._bytes_in_use -= self._aligned_size(store.nbytes)
            store._mark_released()

        logger.debug("Released %d bytes (%d stores live)", store.nbytes, len(self._live))

    @contextmanager
    def scoped(self, byte_size: ByteSize, dtype: Any = None) -> Iterator[BackingStore]:
        """Acquire a store that is released on every exit path."""
        store = self.acquire(byte_size, dtype)
        try:
            yield store
        finally:
            if not store.is_released:
                self.release(store)

    def owns(self, store: BackingStore) -> bool:
        with self._lock:
            return store in self._live

    @property
    def outstanding(self) -> int:
        with self._lock:
            return len(self._live)

    @property
    def bytes_in_use(self) -> ByteSize:
        return ByteSize(self._bytes_in_use)

    @property
    def max_bytes(self) -> Optional[ByteSize]:
        return self._max_bytes

    @property
    def dtype(self) -> np.dtype:
        return self._dtype

    @property
    def alignment(self) -> int:
        return self._alignment

    def get_utilization_stats(self) -> Dict[str, float]:
        """Get memory utilization statistics."""
        with self._lock:
            return {
                'utilization': self._bytes_in_use / self._max_bytes if self._max_bytes else 0.0,
                'allocation_count': float(self._allocation_count),
                'release_count': float(self._release_count),
                'outstanding': float(len(self._live)),
                'bytes_in_use': float(self._bytes_in_use),
                'peak_bytes': float(self._peak_bytes),
            }

    def is_closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Release every outstanding store and refuse further acquisition."""
        with self._lock:
            if self._closed:
                return
            leaked = list(self._live)
            if leaked:
                logger.warning("Closing allocator with %d unreleased stores", len(leaked))
            for store in leaked:
                self.release(store)
            self._closed = True

    def __enter__(self) -> StoreAllocator:
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"StoreAllocator(dtype={self._dtype}, max_bytes={self._max_bytes}, "
            f"outstanding={len(self._live)}, closed={self._closed})"
        )
