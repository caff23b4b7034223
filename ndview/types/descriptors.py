from __future__ import annotations
import functools
import numbers
import operator
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple, Union

from .aliases import Shape, Strides, Coords, Address
from .enums import TraversalOrder
from ..exceptions import InvalidShape, OutOfRange


def prod(values: Iterable[int]) -> int:
    return functools.reduce(operator.mul, values, 1)


def make_shape(extents: Union[int, Iterable[int]]) -> Shape:
    """Validate a sequence of extents and return it as a shape tuple."""
    if isinstance(extents, numbers.Integral):
        extents = (extents,)
    try:
        shape = tuple(operator.index(n) for n in extents)
    except TypeError:
        raise InvalidShape(f"Shape extents must be integers: {extents!r}")
    if any(n < 0 for n in shape):
        raise InvalidShape(f"Invalid shape: {shape}", shape=shape)
    return shape


@functools.lru_cache(maxsize=None)
def packed_strides(shape: Shape, order: TraversalOrder = TraversalOrder.ROW_MAJOR) -> Strides:
    """Strides of a dense layout where the last (row-major) or first
    (column-major) dimension varies fastest."""
    dims = reversed(shape) if order == TraversalOrder.ROW_MAJOR else iter(shape)
    strides = []
    step = 1
    for n in dims:
        strides.append(step)
        step *= max(n, 1)
    if order == TraversalOrder.ROW_MAJOR:
        strides.reverse()
    return tuple(strides)


@dataclass(frozen=True)
class Layout:
    """Shape, strides and base offset of a strided view, in elements.

    A layout is a pure value; every derived view is a new layout over the
    same backing store.
    """
    shape: Shape
    strides: Strides
    offset: int = 0

    def __post_init__(self):
        if len(self.shape) != len(self.strides):
            raise InvalidShape(
                f"Shape {self.shape} and strides {self.strides} differ in dimensionality",
                shape=self.shape
            )
        make_shape(self.shape)

    @staticmethod
    def create(shape: Iterable[int], order: TraversalOrder = TraversalOrder.ROW_MAJOR,
               offset: int = 0) -> Layout:
        shape = make_shape(shape)
        return Layout(shape, packed_strides(shape, order), offset)

    @property
    def ndim(self) -> int:
        return len(self.shape)

    @property
    def size(self) -> int:
        return prod(self.shape)

    def check_coords(self, coords: Iterable[int]) -> Coords:
        try:
            coords = tuple(operator.index(c) for c in coords)
        except TypeError:
            raise OutOfRange(f"Coordinates must be integers: {coords!r}", shape=self.shape)
        if len(coords) != self.ndim:
            raise OutOfRange(
                f"Expected {self.ndim} coordinates for shape {self.shape}, got {len(coords)}",
                coords=coords, shape=self.shape
            )
        for dim, (c, n) in enumerate(zip(coords, self.shape)):
            if not 0 <= c < n:
                raise OutOfRange(
                    f"Coordinate {c} out of range for dimension {dim} of extent {n}",
                    coords=coords, shape=self.shape
                )
        return coords

    def address(self, coords: Iterable[int]) -> Address:
        coords = self.check_coords(coords)
        return Address(self.offset + sum(c * s for c, s in zip(coords, self.strides)))

    def unravel(self, position: int) -> Coords:
        """Coordinates of the element at a row-major logical position."""
        coords = []
        for n in reversed(self.shape):
            position, c = divmod(position, n)
            coords.append(c)
        return tuple(reversed(coords))

    def span(self) -> Optional[Tuple[int, int]]:
        """Lowest and highest address the layout can reach, None when empty."""
        if self.size == 0:
            return None
        low = high = self.offset
        for n, s in zip(self.shape, self.strides):
            reach = (n - 1) * s
            if reach < 0:
                low += reach
            else:
                high += reach
        return low, high

    def contiguous_order(self) -> Optional[TraversalOrder]:
        if self.size == 0:
            return TraversalOrder.ROW_MAJOR
        for order in (TraversalOrder.ROW_MAJOR, TraversalOrder.COLUMN_MAJOR):
            expected = packed_strides(self.shape, order)
            if all(n == 1 or s == e for n, s, e in zip(self.shape, self.strides, expected)):
                return order
        return None

    @property
    def is_contiguous(self) -> bool:
        return self.contiguous_order() is not None

    def __str__(self) -> str:
        return f"Layout(shape={self.shape}, strides={self.strides}, offset={self.offset})"


def as_coords(args: tuple) -> tuple:
    """Accept both ``f(i, j)`` and ``f((i, j))`` call styles."""
    if len(args) == 1 and isinstance(args[0], (tuple, list)):
        return tuple(args[0])
    return args
