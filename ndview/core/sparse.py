"""
Sparse views for ndview.

A SparseView stores only the coordinates whose value differs from the
fill value, so memory grows with the number of set entries instead of the
product of the extents. It shares the indexing contract of DenseView.
"""

from __future__ import annotations
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple, TYPE_CHECKING

import numpy as np

from ..types.aliases import Shape, Coords, ByteSize
from ..types.descriptors import Layout, as_coords
from ..types.protocols import IAllocator
from ..exceptions import InvalidValue
from .iterator import ElementIterator
from .reference import SparseElementRef

if TYPE_CHECKING:
    from .dense import DenseView


class SparseView:
    """Coordinate-keyed view that materializes only non-fill entries.

    Sub-views returned by ``by_element(ndim)`` and iteration share the entry
    table of their parent and address it through a coordinate prefix.
    """

    __slots__ = ('_layout', '_entries', '_fill_value', '_dtype', '_prefix')
    __hash__ = None

    def __init__(self, shape: Iterable[int], fill_value: Any = 0, dtype: Any = None):
        self._layout = Layout.create(shape)
        self._dtype = None if dtype is None else np.dtype(dtype)
        self._fill_value = self._coerce(fill_value)
        self._entries: Dict[Coords, Any] = {}
        self._prefix: Coords = ()

    @classmethod
    def from_dense(cls, view: DenseView, fill_value: Any = 0) -> SparseView:
        """Sparse copy holding the entries of ``view`` that differ from ``fill_value``."""
        sparse = cls(view.shape, fill_value, dtype=view.dtype)
        array = view.to_numpy()
        for coords in np.argwhere(array != sparse._fill_value):
            coords = tuple(int(c) for c in coords)
            sparse._entries[coords] = array[coords]
        return sparse

    def _sub_view(self, coords: Coords) -> SparseView:
        view = SparseView.__new__(SparseView)
        view._layout = Layout.create(self.shape[len(coords):])
        view._dtype = self._dtype
        view._fill_value = self._fill_value
        view._entries = self._entries
        view._prefix = self._prefix + tuple(coords)
        return view

    def _coerce(self, value: Any) -> Any:
        if self._dtype is None:
            return value
        try:
            return self._dtype.type(value)
        except (ValueError, TypeError, OverflowError) as e:
            raise InvalidValue(
                f"Cannot store {value!r} as {self._dtype}: {e}", dtype=str(self._dtype)
            ) from e

    def _key(self, coords: Any) -> Coords:
        if not isinstance(coords, (tuple, list)):
            coords = (coords,)
        return self._prefix + self._layout.check_coords(coords)

    def _own_entries(self) -> Iterator[Tuple[Coords, Any]]:
        if not self._prefix:
            yield from self._entries.items()
            return
        n = len(self._prefix)
        for coords, value in self._entries.items():
            if coords[:n] == self._prefix:
                yield coords[n:], value

    @property
    def shape(self) -> Shape:
        return self._layout.shape

    @property
    def ndim(self) -> int:
        return self._layout.ndim

    @property
    def size(self) -> int:
        return self._layout.size

    @property
    def dtype(self) -> Optional[np.dtype]:
        return self._dtype

    @property
    def fill_value(self) -> Any:
        return self._fill_value

    @property
    def nnz(self) -> int:
        """Number of materialized entries."""
        if not self._prefix:
            return len(self._entries)
        return sum(1 for _ in self._own_entries())

    def get(self, coords: Any) -> Any:
        return self._entries.get(self._key(coords), self._fill_value)

    def set(self, coords: Any, value: Any) -> None:
        key = self._key(coords)
        value = self._coerce(value)
        if value == self._fill_value:
            self._entries.pop(key, None)
        else:
            self._entries[key] = value

    def is_set(self, coords: Any) -> bool:
        return self._key(coords) in self._entries

    def index(self, *coords: int) -> SparseElementRef:
        return SparseElementRef(self, self._layout.check_coords(as_coords(coords)))

    def __getitem__(self, key: Any) -> Any:
        return self.get(key)

    def __setitem__(self, key: Any, value: Any) -> None:
        self.set(key, value)

    def _element(self, coords: Coords, refs: bool) -> Any:
        if len(coords) < self.ndim:
            return self._sub_view(coords)
        if refs:
            return SparseElementRef(self, coords)
        return self._entries.get(self._prefix + coords, self._fill_value)

    def by_element(self, ndim: Optional[int] = None, refs: bool = False) -> ElementIterator:
        return ElementIterator(self, ndim, refs)

    def items(self) -> List[Tuple[Coords, Any]]:
        """Materialized entries in row-major coordinate order."""
        return sorted(self._own_entries())

    def clear(self) -> None:
        if not self._prefix:
            self._entries.clear()
            return
        for coords, _ in list(self._own_entries()):
            del self._entries[self._prefix + coords]

    def _result_dtype(self) -> np.dtype:
        if self._dtype is not None:
            return self._dtype
        return np.asarray([self._fill_value, *(v for _, v in self._own_entries())]).dtype

    def to_numpy(self) -> np.ndarray:
        """Dense numpy copy of the view."""
        array = np.full(self.shape, self._fill_value, dtype=self._result_dtype())
        for coords, value in self._own_entries():
            array[coords] = value
        return array

    def to_dense(self, allocator: Optional[IAllocator] = None) -> DenseView:
        """Owned dense copy of the view."""
        from ..factory import get_default_allocator
        from .dense import DenseView

        dtype = self._result_dtype()
        allocator = allocator or get_default_allocator()
        store = allocator.acquire(ByteSize(self.size * dtype.itemsize), dtype)
        view = DenseView(store, Layout.create(self.shape), owned=True)
        try:
            view.fill(self._fill_value)
            for coords, value in self._own_entries():
                view[coords] = value
        except Exception:
            view.release()
            raise
        return view

    def tolist(self) -> Any:
        return self.to_numpy().tolist()

    def __len__(self) -> int:
        if self.ndim == 0:
            raise TypeError("len() of a 0-d view")
        return self.shape[0]

    def __iter__(self) -> Iterator[Any]:
        if self.ndim == 0:
            raise TypeError("Iteration over a 0-d view")
        return iter(self.by_element(1))

    def __eq__(self, other: Any) -> bool:
        if (isinstance(other, SparseView) and other.shape == self.shape
                and other._fill_value == self._fill_value):
            return dict(self._own_entries()) == dict(other._own_entries())
        if hasattr(other, 'to_numpy'):
            other = other.to_numpy()
        try:
            other = np.asarray(other)
        except ValueError:
            return False
        mine = self.to_numpy()
        return mine.shape == other.shape and bool(np.array_equal(mine, other))

    def __repr__(self) -> str:
        return (
            f"SparseView(shape={self.shape}, nnz={self.nnz}, "
            f"fill_value={self._fill_value!r}, dtype={self._dtype})"
        )
