"""
Cell storage for the cascade grid.

The grid is column-major: ``cells[col][row]`` with row 0 at the top and
gravity pulling toward row ``rows - 1``. An empty cell holds ``None``.
"""
from cascade_be.exceptions import GridInvariantViolation


class SymbolInstance:
    """
    A symbol sitting in one grid cell.

    Pure simulation data. Anything that draws the symbol keeps a reference to
    this object, never the other way round.
    """
    __slots__ = ('kind', 'runtime_multiplier', 'matched')

    def __init__(self, kind, runtime_multiplier=1, matched=False):
        self.kind = kind
        self.runtime_multiplier = runtime_multiplier
        self.matched = matched

    def copy(self):
        return SymbolInstance(self.kind, self.runtime_multiplier, self.matched)

    def __repr__(self):
        if self.runtime_multiplier != 1:
            return f"<SymbolInstance {self.kind.id} x{self.runtime_multiplier}>"
        return f"<SymbolInstance {self.kind.id}>"


class Grid:
    def __init__(self, columns, rows):
        if columns <= 0 or rows <= 0:
            raise ValueError("Grid dimensions must be positive.")
        self.columns = columns
        self.rows = rows
        self.cells = [[None] * rows for _ in range(columns)]

    def reset(self):
        """Empty every cell."""
        self.cells = [[None] * self.rows for _ in range(self.columns)]

    def in_bounds(self, col, row):
        return 0 <= col < self.columns and 0 <= row < self.rows

    def get(self, col, row):
        return self.cells[col][row]

    def set(self, col, row, instance):
        self.cells[col][row] = instance

    def clear(self, col, row):
        self.cells[col][row] = None

    def is_empty(self, col, row):
        return self.cells[col][row] is None

    def occupied_cells(self):
        """All occupied (col, row) coordinates in column-major order."""
        return [(c, r) for c in range(self.columns) for r in range(self.rows) if self.cells[c][r] is not None]

    def empty_cells(self):
        return [(c, r) for c in range(self.columns) for r in range(self.rows) if self.cells[c][r] is None]

    def count_kind(self, symbol_id):
        return sum(1 for col in self.cells for inst in col if inst is not None and inst.kind.id == symbol_id)

    def kinds_present(self):
        return {inst.kind.id for col in self.cells for inst in col if inst is not None}

    def column(self, col):
        """Instances of one column, top to bottom (``None`` for empty cells)."""
        return list(self.cells[col])

    def write_column(self, col, instances):
        if len(instances) != self.rows:
            raise GridInvariantViolation(
                f"Column {col} rewrite has {len(instances)} cells, expected {self.rows}",
                details={'column': col}
            )
        self.cells[col] = list(instances)

    def copy(self):
        """Deep copy, used as the pre-spin rollback point."""
        clone = Grid(self.columns, self.rows)
        clone.cells = [[inst.copy() if inst is not None else None for inst in col] for col in self.cells]
        return clone

    def restore(self, other):
        if other.columns != self.columns or other.rows != self.rows:
            raise GridInvariantViolation("Cannot restore grid from a snapshot of different dimensions")
        self.cells = [[inst.copy() if inst is not None else None for inst in col] for col in other.cells]

    def snapshot(self):
        """Symbol ids as ``[col][row]`` lists, ``None`` for empty cells."""
        return [[inst.kind.id if inst is not None else None for inst in col] for col in self.cells]

    def multiplier_snapshot(self):
        return [
            {'column': c, 'row': r, 'multiplier': self.cells[c][r].runtime_multiplier}
            for c, r in self.occupied_cells()
            if self.cells[c][r].runtime_multiplier != 1
        ]

    def assert_settled(self):
        """Raise GridInvariantViolation unless every cell is occupied."""
        empty = self.empty_cells()
        if empty:
            raise GridInvariantViolation(
                "Settled grid contains empty cells",
                details={'empty_cells': [list(cell) for cell in empty]}
            )

    def assert_packed(self):
        """Raise GridInvariantViolation if any occupied cell sits directly above a vacant one."""
        for c in range(self.columns):
            for r in range(self.rows - 1):
                if self.cells[c][r] is not None and self.cells[c][r + 1] is None:
                    raise GridInvariantViolation(
                        f"Column {c} is not compacted",
                        details={'column': c, 'row': r}
                    )

    def __repr__(self):
        return f"<Grid {self.columns}x{self.rows}>"
