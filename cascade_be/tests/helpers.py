"""Shared fixtures for the cascade backend tests."""
import copy
import json
import os
import random
from collections import deque
from itertools import cycle

from cascade_be.utils.game_config import DEFAULT_SLOT_DIR, build_game_settings, _validate_game_config
from cascade_be.utils.grid import Grid, SymbolInstance

GAME = 'infinity_storm'

# Background kinds that never touch each other in a checkerboard
BACKGROUND = ('thanos', 'scarlet_witch')


def base_config():
    """A fresh, mutable copy of the bundled game configuration."""
    with open(os.path.join(DEFAULT_SLOT_DIR, GAME, 'gameConfig.json')) as f:
        return json.load(f)


def make_settings(**game_overrides):
    config = base_config()
    config['game'].update(copy.deepcopy(game_overrides))
    _validate_game_config(config, GAME)
    return build_game_settings(config)


def checkerboard(columns, rows, kinds=BACKGROUND):
    """Column-major ids with no two orthogonal neighbours of the same kind."""
    return [[kinds[(c + r) % 2] for r in range(rows)] for c in range(columns)]


def layout_with(settings, overrides):
    """Checkerboard layout with ``{(col, row): symbol_id}`` painted over it."""
    layout = checkerboard(settings.columns, settings.rows)
    for (col, row), symbol_id in overrides.items():
        layout[col][row] = symbol_id
    return layout


def grid_from_layout(settings, layout):
    grid = Grid(settings.columns, settings.rows)
    for col, ids in enumerate(layout):
        for row, symbol_id in enumerate(ids):
            if symbol_id is not None:
                grid.set(col, row, SymbolInstance(settings.catalog.get(symbol_id)))
    return grid


def cluster_cells():
    """Eight connected cells: all of column 0 plus the top three of column 1."""
    return [(0, r) for r in range(5)] + [(1, r) for r in range(3)]


class ScriptedRandom:
    """Returns queued floats, then falls back to a seeded ``random.Random``."""

    def __init__(self, values=(), seed=0):
        self.values = deque(values)
        self._fallback = random.Random(seed)

    def random(self):
        if self.values:
            return self.values.popleft()
        return self._fallback.random()


class FailingRandom:
    """Produces ``good_draws`` values, then raises like a dead entropy source."""

    def __init__(self, good_draws=0, seed=0):
        self.good_draws = good_draws
        self.calls = 0
        self._source = random.Random(seed)

    def random(self):
        self.calls += 1
        if self.calls > self.good_draws:
            raise OSError("entropy source unavailable")
        return self._source.random()


class StubGenerator:
    """
    Generator with a fixed opening grid and a scripted refill sequence.

    Refills come from ``refills`` first, then cycle through ``refill_cycle``.
    ``choose_index`` answers from ``picks`` (default 0).
    """

    def __init__(self, settings, layout, refills=(), refill_cycle=('soul_gem', 'time_gem', 'power_gem'), picks=()):
        self.catalog = settings.catalog
        self.layout = layout
        self.refills = deque(refills)
        self._cycle = cycle(refill_cycle)
        self.picks = deque(picks)

    def populate(self, grid):
        filled = []
        for col, ids in enumerate(self.layout):
            for row, symbol_id in enumerate(ids):
                grid.set(col, row, SymbolInstance(self.catalog.get(symbol_id)))
                filled.append((col, row))
        return filled

    def generate_instance(self):
        symbol_id = self.refills.popleft() if self.refills else next(self._cycle)
        return SymbolInstance(self.catalog.get(symbol_id))

    def choose_index(self, n):
        index = self.picks.popleft() if self.picks else 0
        return min(index, n - 1)

    def choose(self, values):
        return values[self.choose_index(len(values))]
