"""Tests for overlap_wfc.engine module."""

import logging

import numpy as np
import pytest

from overlap_wfc import DIRECTIONS, TileSet, Wave
from overlap_wfc.analysis import count_violations


def run_stepwise(wave, callback=None):
    steps = 0
    while True:
        steps += 1
        if wave.collapse(True, callback):
            return steps


class TestConstruction:
    """Tests for creating and initializing waves."""

    @pytest.mark.parametrize("width,height", [(0, 3), (3, 0), (-1, 2)])
    def test_bad_dimensions(self, width, height):
        with pytest.raises(ValueError):
            Wave(width, height)

    def test_collapse_before_init(self):
        wave = Wave(3, 3)
        with pytest.raises(RuntimeError):
            wave.collapse()
        assert wave.uncertainty == 0.0
        assert not wave.is_solved

    def test_init_rejects_bad_tileset(self):
        with pytest.raises(ValueError):
            Wave(2, 2).init(TileSet([], [], []))

    def test_init_rejects_fractional_weights(self, make_open_tileset):
        wave = Wave(2, 2)
        with pytest.raises(ValueError):
            wave.init(make_open_tileset(['a', 'b'], [0.5, 0.5]))
        with pytest.raises(RuntimeError):
            wave.collapse()

    def test_init_from_pattern_rejects_large_window(self, checker_pattern):
        with pytest.raises(ValueError):
            Wave(2, 2).init_from_pattern(checker_pattern, 3, 3, 4, 4)

    def test_initial_field(self, checker_pattern):
        """Test that every cell starts with every tile possible."""
        wave = Wave(4, 3)
        wave.init_from_pattern(checker_pattern, 3, 3, 2, 2, rnd_seed=1)
        assert wave.field_width == 4
        assert wave.field_height == 3
        assert len(wave.field) == 12
        assert all(cell.count() == 2 for cell in wave.field)
        assert wave.uncertainty == 2.0
        assert wave.progress == 0.0
        assert not wave.is_solved
        assert wave.tiles == [0, 1]

    def test_zero_seed_is_resolved(self, checker_pattern):
        """Test that a nondeterministic seed is recorded so the run can be replayed."""
        wave = Wave(5, 5)
        wave.init_from_pattern(checker_pattern, 3, 3, 2, 2)
        assert wave.tileset.rnd_seed != 0

    def test_init_copies_tileset(self, open_tileset):
        open_tileset.rnd_seed = 0
        wave = Wave(2, 2)
        wave.init(open_tileset)
        assert open_tileset.rnd_seed == 0
        assert wave.tileset is not open_tileset

    def test_asymmetric_rules_warning(self, caplog):
        tileset = TileSet.from_rules(['a', 'b'], [1, 1], [
            [[0, 1], [0, 1], [0, 1], [0, 1]],
            [[1], [1], [1], [1]],
        ], rnd_seed=3)
        with caplog.at_level(logging.WARNING, logger="overlap_wfc.engine"):
            Wave(2, 2).init(tileset)
        assert "not mirrored" in caplog.text


class TestCollapse:
    """Tests for running the collapse to completion."""

    def test_every_cell_single(self, diamond_pattern):
        wave = Wave(12, 9)
        wave.init_from_pattern(diamond_pattern, 5, 5, 2, 2, rnd_seed=99)
        assert wave.collapse() is True
        assert all(cell.is_single() for cell in wave.field)
        assert wave.is_solved
        assert wave.uncertainty == 1.0
        assert wave.progress == 100.0
        assert (wave.tile_ids() >= 0).all()

    def test_checkerboard_is_reproduced(self, checker_pattern):
        """Test that the two checker tiles alternate across the whole output."""
        wave = Wave(7, 5)
        wave.init_from_pattern(checker_pattern, 3, 3, 2, 2, rnd_seed=42)
        wave.collapse()
        ids = wave.tile_ids()
        assert ids.shape == (5, 7)
        assert (ids[:, 1:] != ids[:, :-1]).all()
        assert (ids[1:, :] != ids[:-1, :]).all()
        assert count_violations(wave.tileset, ids) == 0

    def test_result_payloads(self, checker_pattern):
        wave = Wave(3, 2)
        wave.init_from_pattern(checker_pattern, 3, 3, 2, 2, rnd_seed=8)
        wave.collapse()
        result = wave.result()
        assert len(result) == 6
        assert set(result) <= {0, 1}
        assert result[0] != result[1]

    def test_monochrome_end_to_end(self, monochrome_pattern):
        """Test a 2x2 single-color seed with a 1x1 window collapsing a 3x3 output."""
        wave = Wave(3, 3)
        wave.init_from_pattern(monochrome_pattern, 2, 2, 1, 1, rnd_seed=7)
        assert wave.tiles == [(200, 30, 30)]
        assert wave.tileset.weights == [4]
        for d in DIRECTIONS:
            assert wave.tileset.neighbors[0][d][0]
        assert wave.collapse() is True
        assert all(cell.is_single() and cell.first() == 0 for cell in wave.field)
        assert wave.result() == [(200, 30, 30)] * 9

    def test_already_solved_returns_true(self, checker_pattern):
        wave = Wave(3, 3)
        wave.init_from_pattern(checker_pattern, 3, 3, 2, 2, rnd_seed=4)
        wave.collapse()
        before = wave.tile_ids()
        assert wave.collapse(True) is True
        assert wave.collapse() is True
        assert (wave.tile_ids() == before).all()

    def test_single_cell_grid_takes_one_step(self, open_tileset):
        wave = Wave(1, 1)
        wave.init(open_tileset)
        assert wave.collapse(True) is True
        assert wave.field[0].is_single()

    def test_zero_weight_tiles_are_never_placed(self, make_open_tileset):
        wave = Wave(6, 6)
        wave.init(make_open_tileset(['a', 'b', 'c'], [0, 3, 0], rnd_seed=17))
        wave.collapse()
        assert (wave.tile_ids() == 1).all()

    def test_infeasible_single_tile(self, diamond_pattern):
        """Test that a tile which cannot neighbour itself still fills the whole grid."""
        wave = Wave(4, 4)
        wave.init_from_pattern(diamond_pattern, 5, 5, 5, 5, rnd_seed=2)
        assert wave.collapse() is True
        assert (wave.tile_ids() == 0).all()


class TestContradiction:
    """Tests for the fallback when rules cannot be satisfied."""

    @pytest.mark.parametrize("width,height", [(1, 2), (2, 1)])
    def test_hostile_pair_completes(self, hostile_tileset, width, height):
        wave = Wave(width, height)
        wave.init(hostile_tileset)
        assert wave.collapse() is True
        assert all(cell.is_single() for cell in wave.field)
        assert count_violations(wave.tileset, wave.tile_ids()) == 1

    def test_hostile_pair_stepwise(self, hostile_tileset):
        """Test that the emptied cell is resolved by the next step rather than left empty."""
        wave = Wave(1, 2)
        wave.init(hostile_tileset)
        assert wave.collapse(True) is False
        assert sorted(cell.count() for cell in wave.field) == [0, 1]
        assert not wave.is_solved
        assert wave.collapse(True) is True
        assert all(cell.is_single() for cell in wave.field)

    def test_hostile_larger_grid(self, hostile_tileset):
        wave = Wave(5, 4)
        wave.init(hostile_tileset)
        assert wave.collapse() is True
        assert (wave.tile_ids() >= 0).all()

    def test_empty_intersection_takes_neighbour_union(self):
        """Test that a cell squeezed between incompatible neighbours picks from their combined rules."""
        # nothing may sit above or below any tile, so only left/right rules can widen a cell
        tileset = TileSet.from_rules(['a', 'b', 'c'], [1000, 1, 1], [
            [[], [], [], [1]],
            [[], [], [0], []],
            [[], [], [2], [2]],
        ], rnd_seed=8)
        wave = Wave(3, 1)
        wave.init(tileset)
        wave.field[0].reset(False)
        wave.field[0].set(0)
        wave.field[2].reset(False)
        wave.field[2].set(2)

        assert wave.collapse() is True
        ids = wave.tile_ids()[0]
        assert ids[0] == 0 and ids[2] == 2
        # 'a' is left out of the union despite its weight
        assert ids[1] in (1, 2)

    def test_zero_weight_candidates_draw_from_catalog(self, make_open_tileset):
        wave = Wave(2, 1)
        wave.init(make_open_tileset(['a', 'b', 'c'], [0, 0, 3], rnd_seed=21))
        wave.field[0].set(2, False)

        assert wave.collapse() is True
        assert all(cell.is_single() for cell in wave.field)
        assert (wave.tile_ids() == 2).all()


class TestDeterminism:
    """Tests for reproducible runs."""

    def test_same_seed_same_grid(self, diamond_pattern):
        grids = []
        for _ in range(2):
            wave = Wave(10, 10)
            wave.init_from_pattern(diamond_pattern, 5, 5, 2, 2, rnd_seed=1234)
            wave.collapse()
            grids.append(wave.tile_ids())
        assert np.array_equal(grids[0], grids[1])

    def test_stepwise_matches_full_run(self, diamond_pattern):
        full = Wave(10, 8)
        full.init_from_pattern(diamond_pattern, 5, 5, 2, 2, rnd_seed=321)
        full.collapse()

        stepped = Wave(10, 8)
        stepped.init_from_pattern(diamond_pattern, 5, 5, 2, 2, rnd_seed=321)
        steps = run_stepwise(stepped)

        assert steps > 1
        assert np.array_equal(full.tile_ids(), stepped.tile_ids())

    def test_tileset_replays_run(self, diamond_pattern):
        """Test that the tileset of a finished wave initializes an identical run."""
        first = Wave(9, 9)
        first.init_from_pattern(diamond_pattern, 5, 5, 2, 2)
        first.collapse()

        second = Wave(9, 9)
        second.init(first.tileset)
        second.collapse()
        assert second.tileset.rnd_seed == first.tileset.rnd_seed
        assert np.array_equal(first.tile_ids(), second.tile_ids())

    def test_independent_waves_interleaved(self, diamond_pattern):
        """Test that two waves stepped alternately do not disturb each other."""
        reference = Wave(8, 8)
        reference.init_from_pattern(diamond_pattern, 5, 5, 2, 2, rnd_seed=77)
        reference.collapse()

        a = Wave(8, 8)
        a.init_from_pattern(diamond_pattern, 5, 5, 2, 2, rnd_seed=77)
        b = Wave(8, 8)
        b.init_from_pattern(diamond_pattern, 5, 5, 2, 2, rnd_seed=5)
        done_a = done_b = False
        while not (done_a and done_b):
            done_a = done_a or a.collapse(True)
            done_b = done_b or b.collapse(True)
        assert np.array_equal(reference.tile_ids(), a.tile_ids())


class TestPartialState:
    """Tests for inspecting a wave between steps."""

    def test_partial_grid(self, diamond_pattern):
        wave = Wave(10, 10)
        wave.init_from_pattern(diamond_pattern, 5, 5, 2, 2, rnd_seed=10)
        start = wave.uncertainty
        solved = wave.collapse(True)
        assert not solved
        assert 1.0 < wave.uncertainty < start
        assert 0.0 < wave.progress < 100.0
        ids = wave.tile_ids()
        assert (ids == -1).any() and (ids >= 0).any()
        assert None in wave.result()


class TestCallback:
    """Tests for the progress callback."""

    def test_first_call_reports_collapsed_cell(self, checker_pattern):
        calls = []

        def callback(wave, x, y):
            calls.append((x, y, wave.field[wave.field_index(x, y)].count()))

        wave = Wave(4, 4)
        wave.init_from_pattern(checker_pattern, 3, 3, 2, 2, rnd_seed=6)
        wave.collapse(True, callback)
        x, y, count = calls[0]
        assert 0 <= x < 4 and 0 <= y < 4
        assert count == 1
        # the checker rules decide every other cell from the first one
        assert len(calls) == 16

    def test_stepwise_and_full_runs_report_the_same_cells(self, diamond_pattern):
        full_calls, step_calls = [], []

        full = Wave(6, 6)
        full.init_from_pattern(diamond_pattern, 5, 5, 2, 2, rnd_seed=12)
        full.collapse(False, lambda wave, x, y: full_calls.append((x, y)))

        stepped = Wave(6, 6)
        stepped.init_from_pattern(diamond_pattern, 5, 5, 2, 2, rnd_seed=12)
        run_stepwise(stepped, lambda wave, x, y: step_calls.append((x, y)))
        assert full_calls == step_calls

    def test_reentry_is_rejected(self, checker_pattern):
        def callback(wave, x, y):
            wave.collapse()

        wave = Wave(3, 3)
        wave.init_from_pattern(checker_pattern, 3, 3, 2, 2, rnd_seed=6)
        with pytest.raises(RuntimeError):
            wave.collapse(False, callback)
        assert wave.collapse() is True

    def test_failed_step_is_not_replayed(self, open_tileset):
        """Test that a step interrupted by its callback is not redone on the next call."""
        calls = []

        def failing(wave, x, y):
            raise KeyError("stop")

        wave = Wave(1, 1)
        wave.init(open_tileset)
        with pytest.raises(KeyError):
            wave.collapse(False, failing)
        tile = wave.tile_ids()[0, 0]

        assert wave.collapse(False, lambda wave, x, y: calls.append((x, y))) is True
        assert calls == []
        assert wave.tile_ids()[0, 0] == tile
