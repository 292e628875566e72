"""
Overlapping Wave Function Collapse on 2-D grids.
"""
from .bitset import BitSet
from .engine import Wave
from .random_source import RandomSource
from .tiles import (
    DIRECTIONS,
    DOWN,
    LEFT,
    OPPOSITE,
    RIGHT,
    UP,
    Neighbors,
    TileSet,
    extract_tiles,
)

__version__ = "0.1.0"

__all__ = [
    "BitSet",
    "DIRECTIONS",
    "DOWN",
    "LEFT",
    "Neighbors",
    "OPPOSITE",
    "RIGHT",
    "RandomSource",
    "TileSet",
    "UP",
    "Wave",
    "extract_tiles",
]
