import random
import unittest
from collections import deque

from cascade_be.utils.game_config import load_game_settings
from cascade_be.utils.grid import Grid
from cascade_be.utils.match_engine import NEIGHBOUR_OFFSETS, find_matches, mark_matched
from cascade_be.utils.symbol_generator import SymbolGenerator
from cascade_be.tests.helpers import GAME, checkerboard, cluster_cells, grid_from_layout, layout_with


def _is_connected(cells):
    cells = set(cells)
    start = next(iter(cells))
    seen = {start}
    queue = deque([start])
    while queue:
        c, r = queue.popleft()
        for dc, dr in NEIGHBOUR_OFFSETS:
            neighbour = (c + dc, r + dr)
            if neighbour in cells and neighbour not in seen:
                seen.add(neighbour)
                queue.append(neighbour)
    return seen == cells


class TestFindMatches(unittest.TestCase):

    def setUp(self):
        self.settings = load_game_settings(GAME)

    def _grid(self, overrides):
        return grid_from_layout(self.settings, layout_with(self.settings, overrides))

    def test_no_match_on_checkerboard(self):
        grid = grid_from_layout(self.settings, checkerboard(6, 5))
        self.assertEqual(find_matches(grid, 8), [])

    def test_cluster_of_eight_matches(self):
        grid = self._grid({cell: 'space_gem' for cell in cluster_cells()})
        matches = find_matches(grid, 8)
        self.assertEqual(len(matches), 1)
        self.assertEqual(matches[0].kind.id, 'space_gem')
        self.assertEqual(matches[0].size, 8)
        self.assertEqual(matches[0].cell_set(), frozenset(cluster_cells()))

    def test_cluster_of_seven_does_not_match(self):
        grid = self._grid({cell: 'space_gem' for cell in cluster_cells()[:7]})
        self.assertEqual(find_matches(grid, 8), [])

    def test_diagonal_contact_does_not_join(self):
        # Two blocks of four that only touch at a corner
        left = [(0, 0), (0, 1), (1, 0), (1, 1)]
        right = [(2, 2), (2, 3), (3, 2), (3, 3)]
        grid = self._grid({cell: 'soul_gem' for cell in left + right})
        self.assertEqual(find_matches(grid, 8), [])
        self.assertEqual(len(find_matches(grid, 4)), 2)

    def test_separate_clusters_of_same_kind(self):
        first = [(0, r) for r in range(5)]
        second = [(5, r) for r in range(5)]
        grid = self._grid({cell: 'time_gem' for cell in first + second})
        matches = find_matches(grid, 5)
        self.assertEqual(len(matches), 2)
        self.assertEqual({m.cell_set() for m in matches}, {frozenset(first), frozenset(second)})

    def test_scatter_never_matches(self):
        grid = self._grid({cell: 'infinity_glove' for cell in cluster_cells()})
        self.assertEqual(find_matches(grid, 8), [])

    def test_empty_cells_break_clusters(self):
        grid = self._grid({cell: 'space_gem' for cell in cluster_cells()})
        grid.clear(0, 2)
        self.assertEqual(find_matches(grid, 8), [])

    def test_find_matches_is_idempotent_and_pure(self):
        grid = self._grid({cell: 'space_gem' for cell in cluster_cells()})
        before = grid.snapshot()
        self.assertEqual(find_matches(grid, 8), find_matches(grid, 8))
        self.assertEqual(grid.snapshot(), before)

    def test_mark_matched_flags_cells(self):
        grid = self._grid({cell: 'space_gem' for cell in cluster_cells()})
        mark_matched(grid, find_matches(grid, 8))
        self.assertTrue(all(grid.get(c, r).matched for c, r in cluster_cells()))
        self.assertFalse(grid.get(3, 3).matched)


class TestMatchProperties(unittest.TestCase):
    """Random grids with a low threshold so that matches are common."""

    def test_matches_are_connected_disjoint_and_uniform(self):
        settings = load_game_settings(GAME)
        generator = SymbolGenerator(settings.catalog, settings.scatter_probability, random.Random(7))
        for _ in range(200):
            grid = Grid(settings.columns, settings.rows)
            generator.populate(grid)
            matches = find_matches(grid, 3)
            used = set()
            for match in matches:
                self.assertGreaterEqual(match.size, 3)
                self.assertTrue(_is_connected(match.cells))
                self.assertTrue(all(grid.get(c, r).kind == match.kind for c, r in match.cells))
                self.assertFalse(match.kind.is_scatter)
                self.assertTrue(used.isdisjoint(match.cell_set()))
                used |= match.cell_set()


if __name__ == '__main__':
    unittest.main()
