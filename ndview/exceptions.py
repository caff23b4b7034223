from __future__ import annotations
from typing import Optional, Tuple


class NDViewError(Exception):
    def __init__(self, message: str, **kwargs):
        super().__init__(message)
        self.message = message
        self.context = kwargs


class ViewError(NDViewError):
    pass


class InvalidShape(ViewError):
    def __init__(self, message: str, shape: Optional[Tuple] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.shape = shape


class OutOfRange(ViewError, IndexError):
    def __init__(self, message: str, coords: Optional[Tuple] = None,
                 shape: Optional[Tuple[int, ...]] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.coords = coords
        self.shape = shape


class InvalidPermutation(ViewError):
    def __init__(self, message: str, permutation: Optional[Tuple] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.permutation = permutation


class NonContiguous(ViewError):
    pass


class SizeMismatch(ViewError):
    def __init__(self, message: str, expected: Optional[int] = None,
                 actual: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.expected = expected
        self.actual = actual


class InvalidWindow(ViewError):
    pass


class IndivisibleShape(ViewError):
    pass


class InvalidValue(ViewError, ValueError):
    def __init__(self, message: str, dtype: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.dtype = dtype


class IteratorExhausted(ViewError, StopIteration):
    pass


class StoreError(NDViewError):
    pass


class AllocationFailure(StoreError):
    def __init__(self, message: str, requested_size: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.requested_size = requested_size


class UseAfterRelease(StoreError):
    pass


class OwnershipError(StoreError):
    pass


__all__ = [
    'NDViewError',
    'ViewError',
    'InvalidShape',
    'OutOfRange',
    'InvalidPermutation',
    'NonContiguous',
    'SizeMismatch',
    'InvalidWindow',
    'IndivisibleShape',
    'InvalidValue',
    'IteratorExhausted',
    'StoreError',
    'AllocationFailure',
    'UseAfterRelease',
    'OwnershipError',
]
