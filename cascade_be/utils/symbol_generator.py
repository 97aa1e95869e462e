import logging
import secrets

from cascade_be.exceptions import RandomSourceUnavailableException
from cascade_be.utils.grid import SymbolInstance

logger = logging.getLogger(__name__)


class SymbolGenerator:
    """
    Weighted random symbol selection backed by one injectable random source.

    Every random decision of a spin (symbol kinds, multiplier draws, cell
    picks) goes through ``draw()`` so a seeded source reproduces a spin
    exactly.

    Args:
        catalog (SymbolCatalog): Symbol table to draw from.
        scatter_probability (float): Independent chance of a scatter per draw.
        random_source: Object with ``random() -> float`` in [0, 1). Defaults to
            ``secrets.SystemRandom()``; tests pass ``random.Random(seed)``.
    """

    def __init__(self, catalog, scatter_probability, random_source=None):
        self.catalog = catalog
        self.scatter_probability = scatter_probability
        self.random_source = random_source if random_source is not None else secrets.SystemRandom()
        self._kinds = catalog.paying_kinds
        self._total_weight = catalog.total_weight

    def draw(self):
        """
        One uniform float in [0, 1) from the source.

        Raises:
            RandomSourceUnavailableException: If the source fails or returns an
                out-of-range value.
        """
        try:
            value = self.random_source.random()
        except Exception as e:
            logger.error("Random source failed: %s", e)
            raise RandomSourceUnavailableException(details={'reason': str(e)}) from e
        if not isinstance(value, float) or not (0.0 <= value < 1.0):
            raise RandomSourceUnavailableException(
                "Random source returned an invalid value", details={'value': repr(value)}
            )
        return value

    def generate(self):
        """Draw one SymbolKind: scatter first, then cumulative-weight selection."""
        if self.draw() < self.scatter_probability:
            return self.catalog.scatter

        target = self.draw() * self._total_weight
        cumulative = 0
        for kind in self._kinds:
            cumulative += kind.weight
            if target < cumulative:
                return kind
        # Float rounding can leave target == total
        return self._kinds[-1]

    def generate_instance(self):
        return SymbolInstance(self.generate())

    def choose_index(self, n):
        if n <= 0:
            raise ValueError("choose_index requires a positive range")
        return min(int(self.draw() * n), n - 1)

    def choose(self, values):
        return values[self.choose_index(len(values))]

    def populate(self, grid):
        """Fill every empty cell, column by column, top-down. Returns the filled cells."""
        filled = []
        for col in range(grid.columns):
            for row in range(grid.rows):
                if grid.is_empty(col, row):
                    grid.set(col, row, self.generate_instance())
                    filled.append((col, row))
        return filled
