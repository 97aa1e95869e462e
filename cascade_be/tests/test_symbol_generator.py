import random
from collections import Counter

import pytest

from cascade_be.exceptions import RandomSourceUnavailableException
from cascade_be.utils.game_config import load_game_settings
from cascade_be.utils.grid import Grid
from cascade_be.utils.symbol_generator import SymbolGenerator
from cascade_be.tests.helpers import GAME, FailingRandom, ScriptedRandom


@pytest.fixture(scope='module')
def settings():
    return load_game_settings(GAME)


def _generator(settings, source):
    return SymbolGenerator(settings.catalog, settings.scatter_probability, source)


class TestSymbolGenerator:

    def test_scatter_when_first_draw_below_probability(self, settings):
        generator = _generator(settings, ScriptedRandom([0.039]))
        assert generator.generate().id == 'infinity_glove'

    def test_weighted_selection_boundaries(self, settings):
        generator = _generator(settings, ScriptedRandom([0.04, 0.0, 0.5, 0.999999]))
        assert generator.generate().id == 'space_gem'
        assert generator.generate().id == 'scarlet_magic_spell'

    def test_frequencies_converge_to_weights(self, settings):
        generator = _generator(settings, random.Random(2024))
        draws = 100000
        counts = Counter(generator.generate().id for _ in range(draws))

        scatter_rate = counts['infinity_glove'] / draws
        assert abs(scatter_rate - settings.scatter_probability) < 0.005

        paying_draws = draws - counts['infinity_glove']
        total_weight = settings.catalog.total_weight
        for kind in settings.catalog.paying_kinds:
            expected = kind.weight / total_weight
            assert abs(counts[kind.id] / paying_draws - expected) < 0.01, kind.id

    def test_seeded_sources_reproduce_grids(self, settings):
        first, second = Grid(6, 5), Grid(6, 5)
        _generator(settings, random.Random(5)).populate(first)
        _generator(settings, random.Random(5)).populate(second)
        assert first.snapshot() == second.snapshot()

    def test_populate_fills_only_empty_cells(self, settings):
        grid = Grid(6, 5)
        generator = _generator(settings, random.Random(1))
        assert len(generator.populate(grid)) == 30
        grid.clear(2, 0)
        grid.clear(2, 1)
        assert generator.populate(grid) == [(2, 0), (2, 1)]
        grid.assert_settled()

    def test_choose_uses_uniform_draw(self, settings):
        generator = _generator(settings, ScriptedRandom([0.0, 0.99, 0.5]))
        assert generator.choose(settings.random_multipliers) == 2
        assert generator.choose(settings.random_multipliers) == 500
        assert generator.choose_index(30) == 15
        with pytest.raises(ValueError):
            generator.choose_index(0)

    def test_failing_source_raises(self, settings):
        generator = _generator(settings, FailingRandom(good_draws=0))
        with pytest.raises(RandomSourceUnavailableException) as excinfo:
            generator.generate()
        assert excinfo.value.status_code == 503

    @pytest.mark.parametrize('value', [1.0, -0.1, 'x'])
    def test_out_of_range_values_raise(self, settings, value):
        generator = _generator(settings, ScriptedRandom([value]))
        with pytest.raises(RandomSourceUnavailableException):
            generator.draw()

    def test_defaults_to_system_random(self, settings):
        generator = SymbolGenerator(settings.catalog, settings.scatter_probability)
        assert 0.0 <= generator.draw() < 1.0
