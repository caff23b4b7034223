"""
Type aliases for ndview.

This module defines type aliases used throughout the library
for better type safety and code clarity.
"""

from typing import NewType, Tuple

# Core type aliases
Shape = Tuple[int, ...]
Strides = Tuple[int, ...]
Coords = Tuple[int, ...]
Address = NewType('Address', int)
ByteSize = NewType('ByteSize', int)
