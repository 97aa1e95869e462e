"""
Cascade (avalanche) primitives: remove matched cells, apply gravity, refill.
"""


class CascadeStep:
    """Record of one avalanche step within a spin."""

    def __init__(self, index, matches, breakdown, win, removed=0, refilled=None):
        self.index = index
        self.matches = matches
        self.breakdown = breakdown
        self.win = win
        self.removed = removed
        self.refilled = refilled or []
        self.multiplier_added = None

    def to_dict(self):
        return {
            'index': self.index,
            'matches': [m.to_dict() for m in self.matches],
            'breakdown': [b.to_dict() for b in self.breakdown],
            'win': self.win,
            'removed': self.removed,
            'refilled': [list(cell) for cell in self.refilled],
            'multiplier_added': self.multiplier_added,
        }


def resolve_step(grid, matches):
    """Empty every cell referenced by any match. Returns the number of cells cleared."""
    removed = 0
    for match in matches:
        for col, row in match.cells:
            if not grid.is_empty(col, row):
                grid.clear(col, row)
                removed += 1
    return removed


def compact_and_refill(grid, generator):
    """
    Apply gravity to every column, then refill the vacancies from the top.

    Surviving instances keep their relative vertical order and are packed
    toward the bottom (row ``rows - 1``). Vacated cells above them are filled
    top-down with freshly generated symbols.

    Returns:
        list[tuple]: (col, row) of every refilled cell.

    Raises:
        GridInvariantViolation: If the grid is not packed and full afterwards.
    """
    refilled = []
    for col in range(grid.columns):
        survivors = [inst for inst in grid.column(col) if inst is not None]
        vacancies = grid.rows - len(survivors)
        new_cells = [generator.generate_instance() for _ in range(vacancies)]
        grid.write_column(col, new_cells + survivors)
        refilled.extend((col, row) for row in range(vacancies))
    grid.assert_packed()
    grid.assert_settled()
    return refilled
