"""
Tile catalog, adjacency rules and their extraction from a seed pattern.

Directions index the four neighbours of a grid cell:
    0: Up, 1: Down, 2: Left, 3: Right
(row, col) = (y, x), row 0 is the top of the grid.
"""
import logging
from dataclasses import dataclass
from time import time
from typing import List

import numpy as np

from .bitset import BitSet

logger = logging.getLogger(__name__)

UP, DOWN, LEFT, RIGHT = 0, 1, 2, 3
DIRECTIONS = (UP, DOWN, LEFT, RIGHT)
ID2DIRS = {UP: 'UP', DOWN: 'DOWN', LEFT: 'LEFT', RIGHT: 'RIGHT'}
OPPOSITE = {UP: DOWN, DOWN: UP, LEFT: RIGHT, RIGHT: LEFT}
# (dx, dy) offset of the neighbouring cell in each direction
OFFSETS = {UP: (0, -1), DOWN: (0, 1), LEFT: (-1, 0), RIGHT: (1, 0)}


class Neighbors:
    """Tiles allowed next to one tile, one BitSet per direction."""

    def __init__(self, tiles):
        self.up = BitSet(tiles)
        self.down = BitSet(tiles)
        self.left = BitSet(tiles)
        self.right = BitSet(tiles)

    def __getitem__(self, direction):
        if direction == UP:
            return self.up
        if direction == DOWN:
            return self.down
        if direction == LEFT:
            return self.left
        if direction == RIGHT:
            return self.right
        raise IndexError("unknown direction {}".format(direction))

    def copy(self):
        other = Neighbors(self.up.size)
        for d in DIRECTIONS:
            other[d].assign(self[d])
        return other

    def __eq__(self, other):
        if not isinstance(other, Neighbors):
            return NotImplemented
        return all(self[d] == other[d] for d in DIRECTIONS)

    def __repr__(self):
        return "Neighbors(up={}, down={}, left={}, right={})".format(
            self.up.indices().tolist(), self.down.indices().tolist(),
            self.left.indices().tolist(), self.right.indices().tolist())


@dataclass
class TileSet:
    """
    Initial state of a wave: the tile catalog, tile weights, adjacency rules
    and the random seed. A tileset taken from one wave can initialise another.
    """
    tiles: list
    weights: List[int]
    neighbors: List[Neighbors]
    rnd_seed: int = 0

    def __len__(self):
        return len(self.tiles)

    @classmethod
    def from_rules(cls, tiles, weights, allow, rnd_seed=0):
        """
        Build a tileset from explicit rules.
        Args:
            tiles: tile payloads
            weights: one non-negative integer weight per tile
            allow: allow[i][d] is an iterable of tile ids allowed next to tile i in direction d
            rnd_seed: random seed, 0 picks one at initialisation
        """
        K = len(tiles)
        if len(allow) != K:
            raise ValueError("expected adjacency rules for {} tiles, got {}".format(K, len(allow)))
        neighbors = []
        for i in range(K):
            nb = Neighbors(K)
            for d in DIRECTIONS:
                for j in allow[i][d]:
                    nb[d].set(j, True)
            neighbors.append(nb)
        return cls(list(tiles), [int(w) for w in weights], neighbors, rnd_seed)

    def copy(self):
        return TileSet(list(self.tiles), list(self.weights),
                       [nb.copy() for nb in self.neighbors], self.rnd_seed)

    def validate(self):
        """Raise ValueError if the tileset cannot initialise a wave."""
        K = len(self.tiles)
        if K == 0:
            raise ValueError("tileset has no tiles")
        if len(self.weights) != K:
            raise ValueError("tiles and weights size mismatch: {} != {}".format(K, len(self.weights)))
        if len(self.neighbors) != K:
            raise ValueError("tiles and neighbors size mismatch: {} != {}".format(K, len(self.neighbors)))
        for i, nb in enumerate(self.neighbors):
            for d in DIRECTIONS:
                if nb[d].size != K:
                    raise ValueError("neighbors of tile {} ({}) sized {}, expected {}".format(
                        i, ID2DIRS[d], nb[d].size, K))
        if any(int(w) != w for w in self.weights):
            raise ValueError("tile weights must be integers, got {}".format(self.weights))
        if any(w < 0 for w in self.weights):
            raise ValueError("tile weights must be non-negative")
        if sum(self.weights) <= 0:
            raise ValueError("at least one tile needs a positive weight")

    def asymmetric_pairs(self):
        """
        Rules that are not mirrored by the opposite direction.
        Returns:
            list of (i, d, j): tile i allows j in direction d but j does not allow i in OPPOSITE[d]
        """
        pairs = []
        for i, nb in enumerate(self.neighbors):
            for d in DIRECTIONS:
                for j in nb[d]:
                    if not self.neighbors[j][OPPOSITE[d]][i]:
                        pairs.append((i, d, j))
        return pairs

    def save(self, path):
        """Save the tileset as a compressed npz archive."""
        words = np.array([[nb[d].words for d in DIRECTIONS] for nb in self.neighbors], dtype=np.uint64)
        np.savez_compressed(
            path,
            tiles=np.array(self.tiles),
            weights=np.array(self.weights, dtype=np.int64),
            neighbors=words,
            rnd_seed=np.array(self.rnd_seed, dtype=np.uint64),
        )

    @classmethod
    def load(cls, path):
        with np.load(path) as data:
            tiles = [_payload(t) for t in data['tiles']]
            weights = data['weights'].tolist()
            words = data['neighbors']
            rnd_seed = int(data['rnd_seed'])
        K = len(tiles)
        neighbors = []
        for i in range(K):
            nb = Neighbors(K)
            for d in DIRECTIONS:
                nb[d].assign_words(words[i, d])
            neighbors.append(nb)
        return cls(tiles, weights, neighbors, rnd_seed)


def _payload(element):
    """Turn one pattern element into a plain, hashable tile payload."""
    element = np.asarray(element)
    if element.ndim == 0:
        return element.item()
    if element.size == 1:
        return element.reshape(-1)[0].item()
    return tuple(element.reshape(-1).tolist())


def as_pattern_grid(pattern, pattern_width, pattern_height):
    """
    Shape a pattern buffer as (height, width, channels).
    Args:
        pattern: flat row-major buffer of scalars or fixed-length sequences,
            or an array already shaped (height, width[, channels])
    """
    if pattern_width <= 0 or pattern_height <= 0:
        raise ValueError("pattern dimensions must be positive, got {}x{}".format(pattern_width, pattern_height))
    arr = np.asarray(pattern)
    if arr.ndim >= 2 and arr.shape[:2] == (pattern_height, pattern_width):
        return arr.reshape(pattern_height, pattern_width, -1)
    if arr.ndim == 0:
        raise ValueError("pattern must be a buffer, got a scalar")
    arr = arr.reshape(arr.shape[0], -1)
    if arr.shape[0] < pattern_width * pattern_height:
        raise ValueError("pattern holds {} elements, {}x{} needs {}".format(
            arr.shape[0], pattern_width, pattern_height, pattern_width * pattern_height))
    return arr[:pattern_width * pattern_height].reshape(pattern_height, pattern_width, -1)


def is_neighbor(A, B, direction):
    """
    Check whether window B can sit next to window A in `direction`,
    i.e. both agree on their overlap after a one cell shift.
    A, B: arrays shaped (tile_height, tile_width, channels)
    """
    if direction == UP:
        # B is above A
        return np.array_equal(A[:-1], B[1:])
    if direction == DOWN:
        return np.array_equal(A[1:], B[:-1])
    if direction == LEFT:
        return np.array_equal(A[:, :-1], B[:, 1:])
    if direction == RIGHT:
        return np.array_equal(A[:, 1:], B[:, :-1])
    raise IndexError("unknown direction {}".format(direction))


def extract_tiles(pattern, pattern_width, pattern_height, tile_width, tile_height):
    """
    Derive the tile catalog and adjacency rules from a seed pattern.
    Every tile_width x tile_height window of the pattern is a tile candidate;
    identical windows are merged and counted.
    Returns:
        TileSet whose tiles are the top-left elements of the distinct windows,
        weighted by occurrence count
    """
    sample = as_pattern_grid(pattern, pattern_width, pattern_height)
    if tile_width <= 0 or tile_height <= 0:
        raise ValueError("tile dimensions must be positive, got {}x{}".format(tile_width, tile_height))
    if tile_width > pattern_width or tile_height > pattern_height:
        raise ValueError("tile {}x{} does not fit into pattern {}x{}".format(
            tile_width, tile_height, pattern_width, pattern_height))

    start_time = time()
    key2idx = {}
    windows = []
    tiles = []
    weights = []
    # slide the window in raster order so tile ids are stable for identical input
    for y in range(pattern_height - tile_height + 1):
        for x in range(pattern_width - tile_width + 1):
            window = sample[y:y + tile_height, x:x + tile_width]
            key = window.tobytes()
            idx = key2idx.get(key)
            if idx is None:
                key2idx[key] = len(windows)
                windows.append(window)
                tiles.append(_payload(window[0, 0]))
                weights.append(1)
            else:
                weights[idx] += 1
    K = len(windows)
    logger.info("Extracted {} unique tiles from a {}x{} pattern with a {}x{} window in {:.2f} seconds.".format(
        K, pattern_width, pattern_height, tile_width, tile_height, time() - start_time))

    start_time = time()
    neighbors = [Neighbors(K) for _ in range(K)]
    for i, A in enumerate(windows):
        for d in DIRECTIONS:
            for j in range(i, K):
                if is_neighbor(A, windows[j], d):
                    neighbors[i][d].set(j, True)
                    neighbors[j][OPPOSITE[d]].set(i, True)
    logger.info("Building compatibility took {:.2f} seconds.".format(time() - start_time))

    for i in range(K):
        for d in DIRECTIONS:
            if neighbors[i][d].is_empty():
                logger.warning("Tile {} has no compatible neighbors in direction {}.".format(i, ID2DIRS[d]))
    return TileSet(tiles, weights, neighbors)
