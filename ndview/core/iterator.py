"""
Element iteration for ndview.

An ElementIterator walks a view in logical row-major order, independent of
the strides that produced the view. Items are computed on demand from the
position, so slicing the iterator never materializes the sequence.
"""

from __future__ import annotations
import operator
from typing import Any, Optional, Union

from ..types.descriptors import Layout, prod
from ..exceptions import IteratorExhausted, OutOfRange


class ElementIterator:
    """Lazy, finite, random-access sequence over the elements of a view.

    With ``ndim`` smaller than the view's dimensionality the iterator walks
    the leading ``ndim`` dimensions and yields sub-views over the rest, which
    is how windows and blocks are enumerated.
    """

    __slots__ = ('_view', '_ndim', '_refs', '_outer', '_start', '_stop', '_pos')

    def __init__(
        self,
        view: Any,
        ndim: Optional[int] = None,
        refs: bool = False,
        start: int = 0,
        stop: Optional[int] = None
    ):
        if ndim is None:
            ndim = view.ndim
        if not 0 <= ndim <= view.ndim:
            raise OutOfRange(
                f"Cannot iterate over {ndim} dimensions of a {view.ndim}-d view",
                shape=view.shape
            )
        self._view = view
        self._ndim = ndim
        self._refs = refs
        self._outer = Layout.create(view.shape[:ndim])
        total = prod(self._outer.shape)
        self._start = start
        self._stop = total if stop is None else stop
        self._pos = start

    def _item(self, position: int) -> Any:
        coords = self._outer.unravel(position)
        return self._view._element(coords, self._refs)

    def __iter__(self) -> ElementIterator:
        return self

    def __next__(self) -> Any:
        if self._pos >= self._stop:
            raise IteratorExhausted("Element iterator is exhausted")
        item = self._item(self._pos)
        self._pos += 1
        return item

    def __len__(self) -> int:
        return self._stop - self._pos

    def __getitem__(self, key: Union[int, slice]) -> Any:
        remaining = len(self)
        if isinstance(key, slice):
            start, stop, step = key.indices(remaining)
            if step != 1:
                raise ValueError("Element iterators only support contiguous slices")
            return ElementIterator(
                self._view, self._ndim, self._refs,
                start=self._pos + start,
                stop=self._pos + max(start, stop)
            )

        k = operator.index(key)
        if k < 0:
            k += remaining
        if not 0 <= k < remaining:
            raise OutOfRange(f"Element {key} out of range for {remaining} remaining elements")
        return self._item(self._pos + k)

    @property
    def exhausted(self) -> bool:
        return self._pos >= self._stop

    def __repr__(self) -> str:
        return (
            f"ElementIterator(shape={self._view.shape}, ndim={self._ndim}, "
            f"remaining={len(self)})"
        )
