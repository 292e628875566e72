"""Shared pytest fixtures for overlap_wfc tests."""

import logging

import matplotlib
matplotlib.use("Agg")

import pytest

from overlap_wfc import DIRECTIONS, TileSet


# =============================================================================
# Patterns
# =============================================================================

@pytest.fixture
def checker_pattern():
    """3x3 checkerboard; with a 2x2 window it yields two tiles that only sit next to each other."""
    return [0, 1, 0,
            1, 0, 1,
            0, 1, 0]


@pytest.fixture
def quadrant_pattern():
    """4x4 pattern made of four 2x2 blocks."""
    return [0, 0, 1, 1,
            0, 0, 1, 1,
            2, 2, 3, 3,
            2, 2, 3, 3]


@pytest.fixture
def diamond_pattern():
    """5x5 pattern with enough variety to make runs seed dependent."""
    return [0, 0, 1, 0, 0,
            0, 1, 1, 1, 0,
            1, 1, 2, 1, 1,
            0, 1, 1, 1, 0,
            0, 0, 1, 0, 0]


@pytest.fixture
def monochrome_pattern():
    """2x2 RGB pattern where every pixel has the same color."""
    return [(200, 30, 30)] * 4


# =============================================================================
# Tilesets
# =============================================================================

def full_adjacency(tiles, weights, rnd_seed=0):
    """Tileset where every tile may sit next to every tile."""
    everything = [list(range(len(tiles))) for _ in DIRECTIONS]
    return TileSet.from_rules(tiles, weights, [everything for _ in tiles], rnd_seed)


@pytest.fixture
def make_open_tileset():
    """Factory for tilesets without adjacency restrictions."""
    return full_adjacency


@pytest.fixture
def open_tileset():
    """Three tiles without any adjacency restriction."""
    return full_adjacency(['a', 'b', 'c'], [1, 1, 1], rnd_seed=5)


@pytest.fixture
def hostile_tileset():
    """Two tiles that allow no neighbour at all, in any direction."""
    nothing = [[] for _ in DIRECTIONS]
    return TileSet.from_rules(['x', 'y'], [1, 1], [nothing, nothing], rnd_seed=11)


@pytest.fixture
def reset_package_logging():
    """Undo handlers installed by setup_logging()."""
    yield
    logger = logging.getLogger("overlap_wfc")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
