import random

import pytest

from cascade_be.exceptions import GridInvariantViolation
from cascade_be.utils.cascade_engine import CascadeStep, compact_and_refill, resolve_step
from cascade_be.utils.game_config import load_game_settings
from cascade_be.utils.grid import Grid
from cascade_be.utils.match_engine import find_matches
from cascade_be.utils.symbol_generator import SymbolGenerator
from cascade_be.utils.win_calculator import score
from cascade_be.tests.helpers import GAME, StubGenerator, cluster_cells, grid_from_layout, layout_with


@pytest.fixture
def settings():
    return load_game_settings(GAME)


@pytest.fixture
def cluster_grid(settings):
    return grid_from_layout(settings, layout_with(settings, {cell: 'space_gem' for cell in cluster_cells()}))


def test_resolve_step_clears_matched_cells(settings, cluster_grid):
    matches = find_matches(cluster_grid, settings.min_match_count)
    removed = resolve_step(cluster_grid, matches)
    assert removed == 8
    assert sorted(cluster_grid.empty_cells()) == sorted(cluster_cells())
    # Clearing again removes nothing
    assert resolve_step(cluster_grid, matches) == 0


def test_compact_keeps_survivor_order_and_refills_top(settings, cluster_grid):
    column_1_survivors = [cluster_grid.get(1, r) for r in (3, 4)]
    resolve_step(cluster_grid, find_matches(cluster_grid, settings.min_match_count))
    generator = StubGenerator(settings, layout=[], refill_cycle=('soul_gem',))

    refilled = compact_and_refill(cluster_grid, generator)

    assert refilled == [(0, 0), (0, 1), (0, 2), (0, 3), (0, 4), (1, 0), (1, 1), (1, 2)]
    assert [cluster_grid.get(1, r) for r in (3, 4)] == column_1_survivors
    assert all(cluster_grid.get(c, r).kind.id == 'soul_gem' for c, r in refilled)
    cluster_grid.assert_settled()
    cluster_grid.assert_packed()


def test_gravity_moves_survivors_down(settings):
    grid = grid_from_layout(settings, layout_with(settings, {}))
    top = grid.get(4, 0)
    grid.clear(4, 3)
    grid.clear(4, 4)
    refilled = compact_and_refill(grid, StubGenerator(settings, layout=[]))
    assert refilled == [(4, 0), (4, 1)]
    assert grid.get(4, 2) is top


def test_compact_raises_when_generator_leaves_holes(settings, cluster_grid):
    class HoleGenerator:
        def generate_instance(self):
            return None

    resolve_step(cluster_grid, find_matches(cluster_grid, settings.min_match_count))
    with pytest.raises(GridInvariantViolation):
        compact_and_refill(cluster_grid, HoleGenerator())


def test_random_cascades_always_settle(settings):
    generator = SymbolGenerator(settings.catalog, settings.scatter_probability, random.Random(99))
    for _ in range(100):
        grid = Grid(settings.columns, settings.rows)
        generator.populate(grid)
        matches = find_matches(grid, 4)
        while matches:
            resolve_step(grid, matches)
            compact_and_refill(grid, generator)
            grid.assert_settled()
            grid.assert_packed()
            matches = find_matches(grid, 4)


def test_cascade_step_to_dict(settings, cluster_grid):
    matches = find_matches(cluster_grid, settings.min_match_count)
    total, breakdown = score(matches, '1.00', cluster_grid, settings.catalog, settings.min_match_count)
    step = CascadeStep(1, matches, breakdown, total, removed=8)
    data = step.to_dict()
    assert data['index'] == 1
    assert data['matches'][0]['symbol_id'] == 'space_gem'
    assert data['breakdown'][0]['match_size'] == 8
    assert data['removed'] == 8
    assert data['multiplier_added'] is None
