from __future__ import annotations
from typing import Any, Iterable, Iterator, Protocol, runtime_checkable

import numpy as np

from .aliases import Shape, Address, ByteSize


@runtime_checkable
class IBackingStore(Protocol):
    @property
    def dtype(self) -> np.dtype:
        ...

    @property
    def length(self) -> int:
        ...

    @property
    def nbytes(self) -> ByteSize:
        ...

    @property
    def is_released(self) -> bool:
        ...

    def read(self, address: Address) -> Any:
        ...

    def write(self, address: Address, value: Any) -> None:
        ...


@runtime_checkable
class IAllocator(Protocol):
    @property
    def dtype(self) -> np.dtype:
        ...

    def acquire(self, byte_size: ByteSize, dtype: Any = None) -> IBackingStore:
        ...

    def release(self, store: IBackingStore) -> None:
        ...


@runtime_checkable
class INDArray(Protocol):
    """Element access shared by dense and sparse views."""

    @property
    def shape(self) -> Shape:
        ...

    @property
    def ndim(self) -> int:
        ...

    @property
    def size(self) -> int:
        ...

    def index(self, coords: Iterable[int]) -> Any:
        ...

    def by_element(self) -> Iterator[Any]:
        ...

    def tolist(self) -> Any:
        ...
