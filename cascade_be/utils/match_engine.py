from collections import deque

NEIGHBOUR_OFFSETS = ((1, 0), (-1, 0), (0, 1), (0, -1))


class Match:
    """A cluster of orthogonally connected same-kind cells, cells sorted column-major."""

    def __init__(self, kind, cells):
        self.kind = kind
        self.cells = sorted(cells)

    @property
    def size(self):
        return len(self.cells)

    def cell_set(self):
        return frozenset(self.cells)

    def to_dict(self):
        return {
            'symbol_id': self.kind.id,
            'size': self.size,
            'cells': [list(cell) for cell in self.cells],
        }

    def __eq__(self, other):
        return isinstance(other, Match) and self.kind == other.kind and self.cells == other.cells

    def __hash__(self):
        return hash((self.kind, tuple(self.cells)))

    def __repr__(self):
        return f"<Match {self.kind.id} x{self.size}>"


def find_matches(grid, min_match_count):
    """
    Find every maximal cluster of at least ``min_match_count`` connected cells.

    Cells are visited column-major; each unvisited, occupied, non-scatter cell
    seeds a breadth-first flood fill over its four orthogonal neighbours of the
    same kind. Regions smaller than the threshold are discarded. Every cell is
    visited once, so a cell belongs to at most one match.

    Args:
        grid (Grid): Grid to scan. It is not modified.
        min_match_count (int): Minimum cluster size.

    Returns:
        list[Match]: Matches in seed order. Empty when nothing pays.
    """
    seen = [[False] * grid.rows for _ in range(grid.columns)]
    matches = []
    for col in range(grid.columns):
        for row in range(grid.rows):
            instance = grid.get(col, row)
            if seen[col][row] or instance is None or instance.kind.is_scatter:
                continue
            kind = instance.kind
            queue = deque([(col, row)])
            seen[col][row] = True
            region = []
            while queue:
                c, r = queue.popleft()
                region.append((c, r))
                for dc, dr in NEIGHBOUR_OFFSETS:
                    nc, nr = c + dc, r + dr
                    if grid.in_bounds(nc, nr) and not seen[nc][nr]:
                        neighbour = grid.get(nc, nr)
                        if neighbour is not None and neighbour.kind == kind:
                            seen[nc][nr] = True
                            queue.append((nc, nr))
            if len(region) >= min_match_count:
                matches.append(Match(kind, region))
    return matches


def mark_matched(grid, matches):
    """Flag matched instances so a presentation layer can highlight them."""
    for match in matches:
        for col, row in match.cells:
            instance = grid.get(col, row)
            if instance is not None:
                instance.matched = True
