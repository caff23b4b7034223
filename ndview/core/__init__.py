"""
Core view components for ndview.
"""

from .dense import DenseView
from .sparse import SparseView
from .iterator import ElementIterator
from .reference import ElementRef, SparseElementRef

__all__ = [
    "DenseView",
    "SparseView",
    "ElementIterator",
    "ElementRef",
    "SparseElementRef",
]
