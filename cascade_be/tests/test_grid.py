import unittest

from cascade_be.exceptions import GridInvariantViolation
from cascade_be.utils.game_config import load_game_settings
from cascade_be.utils.grid import Grid, SymbolInstance
from cascade_be.tests.helpers import GAME, checkerboard, grid_from_layout


class TestGrid(unittest.TestCase):

    def setUp(self):
        self.settings = load_game_settings(GAME)
        self.grid = grid_from_layout(self.settings, checkerboard(6, 5))

    def test_dimensions_must_be_positive(self):
        with self.assertRaises(ValueError):
            Grid(0, 5)

    def test_new_grid_is_empty(self):
        grid = Grid(6, 5)
        self.assertEqual(len(grid.empty_cells()), 30)
        self.assertEqual(grid.occupied_cells(), [])
        with self.assertRaises(GridInvariantViolation):
            grid.assert_settled()

    def test_snapshot_is_column_major(self):
        snapshot = self.grid.snapshot()
        self.assertEqual(len(snapshot), 6)
        self.assertEqual(len(snapshot[0]), 5)
        self.assertEqual(snapshot[0][0], 'thanos')
        self.assertEqual(snapshot[0][1], 'scarlet_witch')
        self.assertEqual(snapshot[1][0], 'scarlet_witch')

    def test_count_and_kinds_present(self):
        self.assertEqual(self.grid.count_kind('thanos'), 15)
        self.assertEqual(self.grid.kinds_present(), {'thanos', 'scarlet_witch'})

    def test_copy_is_independent(self):
        clone = self.grid.copy()
        clone.get(0, 0).runtime_multiplier = 100
        clone.clear(1, 1)
        self.assertEqual(self.grid.get(0, 0).runtime_multiplier, 1)
        self.assertFalse(self.grid.is_empty(1, 1))

    def test_restore_returns_to_copy(self):
        saved = self.grid.copy()
        self.grid.reset()
        self.grid.restore(saved)
        self.assertEqual(self.grid.snapshot(), saved.snapshot())
        with self.assertRaises(GridInvariantViolation):
            self.grid.restore(Grid(5, 5))

    def test_assert_packed_detects_floating_symbol(self):
        self.grid.clear(2, 4)
        with self.assertRaises(GridInvariantViolation):
            self.grid.assert_packed()
        self.grid.set(2, 4, SymbolInstance(self.settings.catalog.get('soul_gem')))
        self.grid.assert_packed()
        self.grid.assert_settled()

    def test_write_column_checks_length(self):
        with self.assertRaises(GridInvariantViolation):
            self.grid.write_column(0, [None, None])

    def test_multiplier_snapshot_lists_only_boosted_cells(self):
        self.grid.get(3, 2).runtime_multiplier = 8
        self.assertEqual(self.grid.multiplier_snapshot(), [{'column': 3, 'row': 2, 'multiplier': 8}])


if __name__ == '__main__':
    unittest.main()
