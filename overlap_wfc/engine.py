import logging
from collections import deque

import numpy as np

from .bitset import BitSet, popcount_rows, word_count
from .random_source import RandomSource
from .tiles import DIRECTIONS, OFFSETS, OPPOSITE, extract_tiles

logger = logging.getLogger(__name__)


class Wave:
    """
    Wave Function Collapse over a 2-D grid of cells.
    Each cell is a BitSet of the tiles still possible there; the wave repeatedly
    collapses the cell with the fewest options and propagates the consequences
    to its neighbours until every cell holds exactly one tile.
    Cells are stored row-major: cell id = y * width + x.

    A contradiction (a cell left without options) never stops the run: the cell
    falls back to every tile its neighbours allow, or to the full weighted
    catalog, so the result may break adjacency rules when they are infeasible.
    """

    def __init__(self, width, height):
        """
        Args:
            width, height: output grid size in cells
        """
        if width <= 0 or height <= 0:
            raise ValueError("wave dimensions must be positive, got {}x{}".format(width, height))
        self._field_w = int(width)
        self._field_h = int(height)
        self._tileset = None
        self._words = None
        self._field = []
        self._rules = None
        self._weights = None
        self._random = None
        self._boundary = []
        self._possible_neighbors = []
        self._pool_weights = None
        self._uncertainty_current = self._field_w * self._field_h
        self._collapsed_cells = 0
        self._unresolved = self._field_w * self._field_h
        self._next_point = None
        self._collapsing = False

    def init(self, tileset):
        """
        Initialize the wave from a prepared tileset.
        The tileset is copied; rnd_seed 0 is replaced with the seed actually used.
        """
        tileset.validate()
        asymmetric = tileset.asymmetric_pairs()
        if asymmetric:
            logger.warning("{} adjacency rules are not mirrored by the opposite direction, e.g. {}".format(
                len(asymmetric), asymmetric[0]))
        self._tileset = tileset.copy()
        self._init_random()
        self._init_field()

    def init_from_pattern(self, pattern, pattern_width, pattern_height, tile_width, tile_height, rnd_seed=0):
        """
        Initialize the wave from a seed pattern.
        Args:
            pattern: row-major pattern buffer, see tiles.as_pattern_grid
            pattern_width, pattern_height: pattern dimensions
            tile_width, tile_height: size of the window compared for local similarity
            rnd_seed: seed for the random generator, the same seed produces the same output
        """
        tileset = extract_tiles(pattern, pattern_width, pattern_height, tile_width, tile_height)
        tileset.rnd_seed = rnd_seed
        self.init(tileset)

    def _init_random(self):
        self._random = RandomSource(self._tileset.rnd_seed)
        self._tileset.rnd_seed = self._random.seed

    def _init_field(self):
        K = len(self._tileset)
        cells = self._field_w * self._field_h
        self._words = np.zeros((cells, word_count(K)), dtype=np.uint64)
        self._field = [BitSet.wrap(K, self._words[i]) for i in range(cells)]
        for cell in self._field:
            cell.reset(True)

        self._rules = np.array(
            [[nb[d].words for d in DIRECTIONS] for nb in self._tileset.neighbors], dtype=np.uint64)
        self._weights = np.array(self._tileset.weights, dtype=np.int64)
        self._pool_weights = np.zeros(K, dtype=np.int64)
        self._possible_neighbors = [BitSet(K) for _ in DIRECTIONS]
        # cells beyond the edge behave like a neighbour holding every tile
        self._boundary = []
        for d in DIRECTIONS:
            allowed = BitSet(K)
            allowed.assign_words(np.bitwise_or.reduce(self._rules[:, OPPOSITE[d]], axis=0))
            self._boundary.append(allowed)

        self._uncertainty_current = cells * K
        self._collapsed_cells = cells if K == 1 else 0
        self._unresolved = 0 if K == 1 else cells
        self._next_point = None

    def collapse(self, one_step=False, callback=None):
        """
        Run the collapse process.
        Args:
            one_step: run a single step only; call again until it returns True to finish the field
            callback: optional callable(wave, x, y), invoked after the forced collapse of a cell
                and after every cell re-filtered by propagation. It slows the run down considerably
                and must not call collapse() again.
        Returns:
            True when every cell holds exactly one tile
        """
        if not self._field:
            raise RuntimeError("wave is not initialized, call init() or init_from_pattern() first")
        if self._collapsing:
            raise RuntimeError("collapse() called from inside a collapse callback")

        self._collapsing = True
        try:
            if self._next_point is None:
                self._next_point = self._get_collapse_point()
            while self._unresolved:
                self._collapse_step(self._next_point, callback)
                self._next_point = self._get_collapse_point()
                if one_step:
                    return self._unresolved == 0
            return True
        except BaseException:
            # the step did not finish, pick the next point again on the next call
            self._next_point = None
            raise
        finally:
            self._collapsing = False

    def _collapse_step(self, id0, callback):
        """
        Collapse cell id0 by force, then re-filter the cells around it breadth-first.
        """
        self._collapse_cell(id0)
        if callback is not None:
            callback(self, id0 % self._field_w, id0 // self._field_w)

        wavefront = deque()
        visited = popcount_rows(self._words) == 1
        self._propagate(id0, wavefront, visited)

        while wavefront:
            current = wavefront.popleft()
            if visited[current]:
                continue
            visited[current] = True

            place = self._field[current]
            initial_variance = place.count()
            if initial_variance == 1:
                continue

            self._filter_candidates(current)
            if initial_variance != place.count():
                self._propagate(current, wavefront, visited)

            if callback is not None:
                callback(self, current % self._field_w, current // self._field_w)

    def _collapse_cell(self, index):
        """
        Place one tile in cell `index`, picked at random in proportion to the tile weights.
        """
        self._filter_candidates(index)
        cell = self._field[index]
        pool = self._pool_weights
        if cell.is_empty():
            logger.debug("cell {} has no candidates left, picking from the full catalog".format(index))
            pool[:] = self._weights
        else:
            pool[:] = 0
            allowed = cell.indices()
            pool[allowed] = self._weights[allowed]
            if not pool.any():
                logger.debug("candidates of cell {} all have zero weight, picking from the full catalog".format(index))
                pool[:] = self._weights

        tile = self._random.weighted_index(pool)
        cell.reset(False)
        cell.set(tile, True)

    def _filter_candidates(self, index):
        """
        Intersect the candidates of cell `index` with the tiles its four neighbours allow.
        When nothing survives, the cell takes every tile allowed by any neighbour.
        """
        candidates = self._field[index]
        if candidates.is_empty():
            candidates.reset(True)

        x, y = index % self._field_w, index // self._field_w
        for d in DIRECTIONS:
            allowed = self._possible_neighbors[d]
            neighbor = self._neighbor_id(x, y, d)
            if neighbor is None:
                allowed.assign(self._boundary[d])
            else:
                present = self._field[neighbor].indices()
                allowed.assign_words(np.bitwise_or.reduce(self._rules[present, OPPOSITE[d]], axis=0))
            candidates.intersect(allowed)

        if candidates.is_empty():
            logger.debug("contradiction at ({}, {}), widening to the union of neighbour rules".format(x, y))
            for allowed in self._possible_neighbors:
                candidates.union_with(allowed)

    def _get_collapse_point(self):
        """
        Find the cell with the lowest entropy, i.e. the fewest options above one.
        Ties are broken at random. Cells emptied by a contradiction go first.
        Also refreshes the uncertainty counters; returns 0 when every cell is single.
        """
        counts = popcount_rows(self._words)
        single = counts == 1
        self._uncertainty_current = int(counts.sum())
        self._collapsed_cells = int(np.count_nonzero(single))
        self._unresolved = len(counts) - self._collapsed_cells

        candidates = np.flatnonzero(counts == 0)
        if len(candidates) == 0:
            open_cells = counts > 1
            if not open_cells.any():
                return 0
            candidates = np.flatnonzero(counts == counts[open_cells].min())
        return int(candidates[self._random.below(len(candidates))])

    def _propagate(self, id0, wavefront, visited):
        """
        Queue the neighbours of id0 that were not visited during this step
        and still have more than one option.
        """
        x, y = id0 % self._field_w, id0 // self._field_w
        for d in DIRECTIONS:
            neighbor = self._neighbor_id(x, y, d)
            if neighbor is not None and not visited[neighbor] and not self._field[neighbor].is_single():
                wavefront.append(neighbor)

    def _neighbor_id(self, x, y, direction):
        dx, dy = OFFSETS[direction]
        nx, ny = x + dx, y + dy
        if nx < 0 or ny < 0 or nx >= self._field_w or ny >= self._field_h:
            return None
        return self.field_index(nx, ny)

    def field_index(self, x, y):
        return y * self._field_w + x

    @property
    def tileset(self):
        """The initial state of the wave, usable to initialize other waves."""
        return self._tileset

    @property
    def tiles(self):
        return self._tileset.tiles if self._tileset is not None else []

    @property
    def field(self):
        """Per-cell possibility sets, row-major. Treat as read-only."""
        return self._field

    @property
    def field_width(self):
        return self._field_w

    @property
    def field_height(self):
        return self._field_h

    @property
    def uncertainty(self):
        """
        Total number of possible tiles divided by the number of cells.
        Equal to 1.0 when the field is solved.
        """
        if not self._field:
            return 0.0
        return self._uncertainty_current / len(self._field)

    @property
    def progress(self):
        """Percentage of cells holding a single tile."""
        if not self._field:
            return 0.0
        return 100.0 * self._collapsed_cells / len(self._field)

    @property
    def is_solved(self):
        return bool(self._field) and self._unresolved == 0

    def tile_ids(self):
        """
        Returns:
            (height, width) int array of the tile placed in each cell, -1 where no single tile is set
        """
        ids = [cell.first() if cell.is_single() else -1 for cell in self._field]
        return np.array(ids, dtype=np.int64).reshape(self._field_h, self._field_w)

    def result(self):
        """Row-major list of tile payloads, None for cells without a single tile."""
        return [self.tiles[i] if i >= 0 else None for i in self.tile_ids().reshape(-1).tolist()]
