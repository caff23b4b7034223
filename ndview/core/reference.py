from __future__ import annotations
from typing import Any, TYPE_CHECKING

from ..types.aliases import Address, Coords
from ..types.protocols import IBackingStore

if TYPE_CHECKING:
    from .sparse import SparseView


class _BaseRef:
    __slots__ = ()
    __hash__ = None

    def get(self) -> Any:
        raise NotImplementedError

    def set(self, value: Any) -> None:
        raise NotImplementedError

    @property
    def value(self) -> Any:
        return self.get()

    @value.setter
    def value(self, value: Any) -> None:
        self.set(value)

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, _BaseRef):
            other = other.get()
        return self.get() == other


class ElementRef(_BaseRef):
    """Read/write handle on one element of a backing store.

    Writes land in the store immediately and are visible through every
    view that covers the same address.
    """

    __slots__ = ('_store', '_address')

    def __init__(self, store: IBackingStore, address: Address):
        self._store = store
        self._address = address

    @property
    def address(self) -> Address:
        return self._address

    def get(self) -> Any:
        return self._store.read(self._address)

    def set(self, value: Any) -> None:
        self._store.write(self._address, value)

    def __repr__(self) -> str:
        return f"ElementRef(address={self._address}, value={self.get()!r})"


class SparseElementRef(_BaseRef):
    __slots__ = ('_view', '_coords')

    def __init__(self, view: SparseView, coords: Coords):
        self._view = view
        self._coords = coords

    @property
    def coords(self) -> Coords:
        return self._coords

    def get(self) -> Any:
        return self._view.get(self._coords)

    def set(self, value: Any) -> None:
        self._view.set(self._coords, value)

    def __repr__(self) -> str:
        return f"SparseElementRef(coords={self._coords}, value={self.get()!r})"
