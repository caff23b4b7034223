"""
Dense strided views for ndview.

A DenseView pairs a Layout (shape, strides, offset) with a backing store.
Every derived view (sub-slice, transpose, diagonal, windows, blocks,
reshape) is computed from layout arithmetic alone and shares the store of
its source, so writes through one view are visible through all others.
"""

from __future__ import annotations
import numbers
import operator
from typing import Any, Iterable, Iterator, Optional, Sequence, Tuple, Union

import numpy as np
import torch

from ..types.aliases import Shape, Strides, Coords, ByteSize
from ..types.descriptors import Layout, make_shape, packed_strides, prod, as_coords
from ..types.enums import Ownership, TraversalOrder
from ..types.protocols import IAllocator
from ..memory.segments import BackingStore
from ..exceptions import (
    InvalidShape,
    OutOfRange,
    InvalidPermutation,
    NonContiguous,
    SizeMismatch,
    InvalidWindow,
    IndivisibleShape,
    InvalidValue,
    UseAfterRelease,
    OwnershipError
)
from .iterator import ElementIterator
from .reference import ElementRef

IndexItem = Union[int, slice, Tuple[int, ...], type(Ellipsis)]


def _is_int(item: Any) -> bool:
    return isinstance(item, numbers.Integral)


class DenseView:
    """N-dimensional strided view over a backing store."""

    __slots__ = ('_store', '_layout', '_owned')
    __hash__ = None

    def __init__(self, store: BackingStore, layout: Optional[Layout] = None, owned: bool = False):
        if layout is None:
            layout = Layout.create((store.length,))

        span = layout.span()
        if span is not None and (span[0] < 0 or span[1] >= store.length):
            raise OutOfRange(
                f"{layout} addresses elements outside a store of {store.length} elements",
                shape=layout.shape
            )
        if owned and store.is_borrowed:
            raise OwnershipError("A view cannot own borrowed memory")

        self._store = store
        self._layout = layout
        self._owned = owned

    # ------------------------------------------------------------------
    # Queries

    @property
    def layout(self) -> Layout:
        return self._layout

    @property
    def store(self) -> BackingStore:
        return self._store

    @property
    def shape(self) -> Shape:
        return self._layout.shape

    @property
    def strides(self) -> Strides:
        return self._layout.strides

    @property
    def offset(self) -> int:
        return self._layout.offset

    @property
    def ndim(self) -> int:
        return self._layout.ndim

    @property
    def size(self) -> int:
        return self._layout.size

    @property
    def dtype(self) -> np.dtype:
        return self._store.dtype

    @property
    def ownership(self) -> Ownership:
        return Ownership.OWNED if self._owned else Ownership.BORROWED

    @property
    def is_owned(self) -> bool:
        return self._owned

    @property
    def is_released(self) -> bool:
        return self._store.is_released

    @property
    def is_contiguous(self) -> bool:
        return self._layout.is_contiguous

    def _check_alive(self) -> None:
        if self._store.is_released:
            raise UseAfterRelease("View refers to a released backing store")

    def _derive(self, layout: Layout) -> DenseView:
        self._check_alive()
        return DenseView(self._store, layout)

    # ------------------------------------------------------------------
    # Element access

    def index(self, *coords: int) -> ElementRef:
        """Read/write handle on the element at ``coords``."""
        self._check_alive()
        return ElementRef(self._store, self._layout.address(as_coords(coords)))

    def _expand_key(self, key: Any) -> Tuple[IndexItem, ...]:
        items = key if isinstance(key, tuple) else (key,)
        if any(item is Ellipsis for item in items):
            if sum(1 for item in items if item is Ellipsis) > 1:
                raise OutOfRange("An index can only have a single ellipsis")
            at = next(i for i, item in enumerate(items) if item is Ellipsis)
            fill = (slice(None),) * max(0, self.ndim - (len(items) - 1))
            items = items[:at] + fill + items[at + 1:]
        if len(items) > self.ndim:
            raise OutOfRange(
                f"Too many indices for a {self.ndim}-d view: {len(items)}",
                coords=items, shape=self.shape
            )
        return items

    def _is_element_key(self, items: Tuple[IndexItem, ...]) -> bool:
        return len(items) == self.ndim and all(_is_int(item) for item in items)

    def __getitem__(self, key: Any) -> Any:
        items = self._expand_key(key)
        if self._is_element_key(items):
            self._check_alive()
            return self._store.read(self._layout.address(items))
        return self.sub_view(items)

    def __setitem__(self, key: Any, value: Any) -> None:
        items = self._expand_key(key)
        if self._is_element_key(items):
            self._check_alive()
            self._store.write(self._layout.address(items), value)
        else:
            self.sub_view(items).assign(value)

    def __call__(self, *coords: int) -> Any:
        """Column-first access: ``view(c, r) == view[r, c]`` for a matrix.

        Coordinates name dimensions from the last to the first. Fewer
        coordinates than dimensions select a sub-view, so ``matrix(j)`` is
        column ``j``.
        """
        coords = as_coords(coords)
        if len(coords) > self.ndim:
            raise OutOfRange(
                f"Too many coordinates for a {self.ndim}-d view: {len(coords)}",
                coords=coords, shape=self.shape
            )
        items = (slice(None),) * (self.ndim - len(coords)) + tuple(reversed(coords))
        return self[items]

    def _element(self, coords: Coords, refs: bool) -> Any:
        if len(coords) < self.ndim:
            return self.sub_view(coords)
        address = self._layout.offset + sum(c * s for c, s in zip(coords, self._layout.strides))
        if refs:
            return ElementRef(self._store, address)
        return self._store.read(address)

    # ------------------------------------------------------------------
    # Derived views

    @staticmethod
    def _resolve_range(item: slice, extent: int, dim: int) -> range:
        step = 1 if item.step is None else operator.index(item.step)
        if step == 0:
            raise OutOfRange(f"Slice step cannot be zero (dimension {dim})")

        start, stop = item.start, item.stop
        for bound in (start, stop):
            if bound is not None and not 0 <= bound <= extent:
                raise OutOfRange(
                    f"Range bound {bound} exceeds dimension {dim} of extent {extent}"
                )
        if step > 0:
            start = 0 if start is None else start
            stop = extent if stop is None else stop
        else:
            if start is not None and extent and start >= extent:
                raise OutOfRange(
                    f"Range start {start} exceeds dimension {dim} of extent {extent}"
                )
            start = extent - 1 if start is None else start
            stop = -1 if stop is None else stop
        return range(start, stop, step)

    def sub_view(self, ranges: Union[IndexItem, Sequence[IndexItem]]) -> DenseView:
        """Narrow the view per dimension without copying.

        Each entry is an int (drops the dimension), a slice, or a
        ``(start, stop[, step])`` tuple. Missing trailing dimensions are kept
        whole. A step multiplies the stride of its dimension.
        """
        self._check_alive()
        if isinstance(ranges, list):
            ranges = tuple(ranges)
        items = self._expand_key(ranges)
        items = items + (slice(None),) * (self.ndim - len(items))

        shape = []
        strides = []
        offset = self._layout.offset
        for dim, (item, extent, stride) in enumerate(zip(items, self.shape, self.strides)):
            if _is_int(item):
                if not 0 <= item < extent:
                    raise OutOfRange(
                        f"Index {item} out of range for dimension {dim} of extent {extent}",
                        coords=items, shape=self.shape
                    )
                offset += item * stride
                continue

            if isinstance(item, tuple):
                item = slice(*item)
            if not isinstance(item, slice):
                raise TypeError(f"Unsupported index {item!r} for dimension {dim}")

            selected = self._resolve_range(item, extent, dim)
            if len(selected):
                offset += selected.start * stride
            shape.append(len(selected))
            strides.append(stride * selected.step)

        return self._derive(Layout(tuple(shape), tuple(strides), offset))

    def transpose(self, permutation: Union[None, int, Iterable[int]] = None) -> DenseView:
        """Reorder dimensions.

        ``None`` reverses all dimensions. A partial permutation brings the
        named dimensions to the front; the others keep their relative order.
        """
        if permutation is None:
            perm = tuple(reversed(range(self.ndim)))
        else:
            if _is_int(permutation):
                permutation = (permutation,)
            try:
                perm = tuple(operator.index(p) for p in permutation)
            except TypeError:
                raise InvalidPermutation(f"Invalid permutation {permutation!r}")

        if (len(perm) > self.ndim or len(set(perm)) != len(perm)
                or any(not 0 <= p < self.ndim for p in perm)):
            raise InvalidPermutation(
                f"{perm} is not a permutation of {self.ndim} dimensions", permutation=perm
            )
        perm = perm + tuple(d for d in range(self.ndim) if d not in perm)

        return self._derive(Layout(
            tuple(self.shape[p] for p in perm),
            tuple(self.strides[p] for p in perm),
            self.offset
        ))

    def evert(self) -> DenseView:
        return self.transpose(None)

    def reshape(self, new_shape: Iterable[int]) -> DenseView:
        """Reinterpret a contiguous view under a new shape without copying.

        The elements are read in the traversal order the view is packed in,
        row-major unless the view is column-major packed. A column-major view
        such as ``evert()`` of a row-major one is therefore reshaped in memory
        order, and the result no longer follows the ``by_element()`` order of
        the source: ``matrix.evert().reshape((12,))`` yields ``0, 1, 2, ...``
        where ``matrix.evert().by_element()`` yields ``0, 3, 6, ...``.
        """
        new_shape = make_shape(new_shape)
        if prod(new_shape) != self.size:
            raise SizeMismatch(
                f"Cannot reshape {self.shape} into {new_shape}",
                expected=self.size, actual=prod(new_shape)
            )
        order = self._layout.contiguous_order()
        if order is None:
            raise NonContiguous(f"{self._layout} is not contiguous and cannot be reshaped")
        return self._derive(Layout(new_shape, packed_strides(new_shape, order), self.offset))

    def diagonal(self, axes: Optional[Iterable[int]] = None) -> DenseView:
        """Walk the given axes in lockstep.

        The diagonal dimension comes first, followed by the remaining
        dimensions. Its extent is the smallest extent among ``axes`` and its
        stride is the sum of their strides.
        """
        if axes is None:
            axes = tuple(range(self.ndim))
        else:
            try:
                axes = tuple(operator.index(a) for a in axes)
            except TypeError:
                raise InvalidPermutation(f"Invalid diagonal axes {axes!r}")

        if len(axes) < 2:
            raise InvalidShape("A diagonal needs at least two dimensions", shape=self.shape)
        if len(set(axes)) != len(axes) or any(not 0 <= a < self.ndim for a in axes):
            raise InvalidPermutation(
                f"Invalid diagonal axes {axes} for a {self.ndim}-d view", permutation=axes
            )

        rest = [d for d in range(self.ndim) if d not in axes]
        length = min(self.shape[a] for a in axes)
        stride = sum(self.strides[a] for a in axes)
        return self._derive(Layout(
            (length,) + tuple(self.shape[d] for d in rest),
            (stride,) + tuple(self.strides[d] for d in rest),
            self.offset
        ))

    def _check_tile(self, tile: Iterable[int], kind: str) -> Shape:
        try:
            tile = make_shape(tile)
        except InvalidShape as e:
            raise InvalidWindow(f"Invalid {kind} shape: {e.message}") from e
        if len(tile) != self.ndim:
            raise InvalidWindow(
                f"{kind.capitalize()} shape {tile} does not match a {self.ndim}-d view"
            )
        if any(t < 1 for t in tile):
            raise InvalidWindow(f"{kind.capitalize()} extents must be positive: {tile}")
        return tile

    def windows(self, window_shape: Iterable[int]) -> DenseView:
        """Every placement of a window, as a view of twice the dimensionality.

        Leading dimensions enumerate the anchor positions, trailing dimensions
        index within a window. Neighbouring windows overlap in memory.
        """
        window = self._check_tile(window_shape, "window")
        for dim, (w, n) in enumerate(zip(window, self.shape)):
            if w > n:
                raise InvalidWindow(
                    f"Window extent {w} exceeds dimension {dim} of extent {n}"
                )
        return self._derive(Layout(
            tuple(n - w + 1 for n, w in zip(self.shape, window)) + window,
            self.strides + self.strides,
            self.offset
        ))

    def blocks(self, block_shape: Iterable[int]) -> DenseView:
        """Partition the view into non-overlapping blocks.

        Raises IndivisibleShape unless every extent is an exact multiple of
        the block extent.
        """
        block = self._check_tile(block_shape, "block")
        for dim, (b, n) in enumerate(zip(block, self.shape)):
            if n % b:
                raise IndivisibleShape(
                    f"Dimension {dim} of extent {n} is not divisible by block extent {b}"
                )
        return self._derive(Layout(
            tuple(n // b for n, b in zip(self.shape, block)) + block,
            tuple(s * b for s, b in zip(self.strides, block)) + self.strides,
            self.offset
        ))

    # ------------------------------------------------------------------
    # Iteration

    def by_element(self, ndim: Optional[int] = None, refs: bool = False) -> ElementIterator:
        self._check_alive()
        return ElementIterator(self, ndim, refs)

    def __iter__(self) -> Iterator[Any]:
        if self.ndim == 0:
            raise TypeError("Iteration over a 0-d view")
        return iter(self.by_element(1))

    def __len__(self) -> int:
        if self.ndim == 0:
            raise TypeError("len() of a 0-d view")
        return self.shape[0]

    # ------------------------------------------------------------------
    # Bulk access and interop

    def to_numpy(self) -> np.ndarray:
        """Zero-copy numpy array over the same memory."""
        self._check_alive()
        if self.size == 0:
            return np.empty(self.shape, dtype=self.dtype)
        itemsize = self.dtype.itemsize
        return np.lib.stride_tricks.as_strided(
            self._store.array[self.offset:],
            shape=self.shape,
            strides=tuple(s * itemsize for s in self.strides)
        )

    def __array__(self, dtype: Any = None, copy: Optional[bool] = None) -> np.ndarray:
        """numpy array protocol. Aliases the store unless a copy is requested
        or a dtype change forces one."""
        array = self.to_numpy()
        if dtype is not None and np.dtype(dtype) != array.dtype:
            if copy is False:
                raise ValueError(
                    f"Converting {array.dtype} to {np.dtype(dtype)} requires a copy"
                )
            return array.astype(dtype)
        return array.copy() if copy else array

    def to_torch(self) -> torch.Tensor:
        """Zero-copy torch tensor over the same memory."""
        if any(s < 0 for s in self.strides):
            raise NonContiguous("Torch tensors cannot have negative strides")
        return torch.from_numpy(self.to_numpy())

    def tolist(self) -> Any:
        return self.to_numpy().tolist()

    def _convert(self, source: np.ndarray) -> np.ndarray:
        # Every element is converted before the first one is written.
        try:
            return source.astype(self.dtype, copy=False)
        except (ValueError, TypeError, OverflowError) as e:
            raise InvalidValue(
                f"Cannot store values of type {source.dtype} as {self.dtype}: {e}",
                dtype=str(self.dtype)
            ) from e

    def fill(self, value: Any) -> None:
        target = self.to_numpy()
        target[...] = self._convert(np.asarray(value))

    def assign(self, values: Any) -> None:
        """Write a scalar or a nested sequence of exactly this view's shape.

        The values are checked and converted to the view's dtype before
        anything is written, so a failed assignment leaves the view unchanged.
        """
        target = self.to_numpy()
        if hasattr(values, 'to_numpy'):
            source = np.asarray(values.to_numpy())
        else:
            try:
                source = np.asarray(values)
            except ValueError as e:
                raise SizeMismatch(f"Cannot assign ragged values: {e}") from e

        if source.ndim != 0 and source.shape != self.shape:
            raise SizeMismatch(
                f"Cannot assign values of shape {source.shape} to a view of shape {self.shape}",
                expected=self.size, actual=source.size
            )
        target[...] = self._convert(source)

    def copy(self, allocator: Optional[IAllocator] = None) -> DenseView:
        """Packed, owned copy of the view's elements."""
        from ..factory import get_default_allocator

        source = self.to_numpy()
        allocator = allocator or get_default_allocator()
        store = allocator.acquire(ByteSize(self.size * self.dtype.itemsize), self.dtype)
        view = DenseView(store, Layout.create(self.shape, TraversalOrder.ROW_MAJOR), owned=True)
        try:
            view.to_numpy()[...] = source
        except Exception:
            view.release()
            raise
        return view

    # ------------------------------------------------------------------
    # Ownership

    def release(self) -> None:
        """Return an owned store to its allocator."""
        if not self._owned:
            raise OwnershipError("Only the owning view can release its backing store")
        if self._store.is_released:
            raise UseAfterRelease("Backing store has already been released")
        self._store.allocator.release(self._store)

    def __enter__(self) -> DenseView:
        return self

    def __exit__(self, *args) -> None:
        if self._owned and not self._store.is_released:
            self.release()

    # ------------------------------------------------------------------

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, DenseView):
            other = other.to_numpy()
        elif hasattr(other, 'to_numpy'):
            other = other.to_numpy()
        try:
            other = np.asarray(other)
        except ValueError:
            return False
        mine = self.to_numpy()
        return mine.shape == other.shape and bool(np.array_equal(mine, other))

    def __repr__(self) -> str:
        state = "released" if self._store.is_released else self.ownership.name.lower()
        return (
            f"DenseView(shape={self.shape}, strides={self.strides}, offset={self.offset}, "
            f"dtype={self.dtype}, {state})"
        )
