from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal('0.01')
SIZE_STEP = Decimal('0.5')


def quantize_money(amount):
    """Round a Decimal amount half-up to cents."""
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


class MatchWin:
    """Per-match win breakdown kept for telemetry and debug displays."""

    def __init__(self, symbol_id, match_size, cells, base_payout, base_win,
                 size_multiplier, symbol_multiplier, win):
        self.symbol_id = symbol_id
        self.match_size = match_size
        self.cells = cells
        self.base_payout = base_payout
        self.base_win = base_win
        self.size_multiplier = size_multiplier
        self.symbol_multiplier = symbol_multiplier
        self.win = win

    def to_dict(self):
        return {
            'symbol_id': self.symbol_id,
            'match_size': self.match_size,
            'cells': [list(cell) for cell in self.cells],
            'base_payout': self.base_payout,
            'base_win': self.base_win,
            'size_multiplier': self.size_multiplier,
            'symbol_multiplier': self.symbol_multiplier,
            'win': self.win,
        }


def score_match(match, bet, grid, catalog, min_match_count):
    """
    Score one match.

    base = payout * bet
    size multiplier = 1 + (size - min_match_count) * 0.5
    symbol multiplier = highest runtime multiplier on any cell of the match

    Returns:
        MatchWin: breakdown with ``win`` rounded half-up to cents.
    """
    bet = Decimal(str(bet))
    base_payout = catalog.payout(match.kind)
    base_win = base_payout * bet
    size_multiplier = 1 + (match.size - min_match_count) * SIZE_STEP

    symbol_multiplier = 1
    for col, row in match.cells:
        instance = grid.get(col, row)
        if instance is not None and instance.runtime_multiplier > symbol_multiplier:
            symbol_multiplier = instance.runtime_multiplier

    win = quantize_money(base_win * size_multiplier * Decimal(symbol_multiplier))
    return MatchWin(
        symbol_id=match.kind.id,
        match_size=match.size,
        cells=list(match.cells),
        base_payout=base_payout,
        base_win=base_win,
        size_multiplier=size_multiplier,
        symbol_multiplier=symbol_multiplier,
        win=win,
    )


def score(matches, bet, grid, catalog, min_match_count):
    """
    Score a set of matches. Pure: reads the grid, never mutates it.

    Returns:
        tuple: (total Decimal, list[MatchWin])
    """
    breakdown = [score_match(m, bet, grid, catalog, min_match_count) for m in matches]
    total = sum((b.win for b in breakdown), Decimal('0.00'))
    return total, breakdown


def get_win_category(total_win, bet, categories):
    """
    Presentation-only classification of a spin's win by its bet ratio.

    Args:
        total_win (Decimal): Spin total.
        bet (Decimal): Stake for the spin.
        categories (iterable[dict]): ``{key, name, min_ratio}`` ordered ascending.

    Returns:
        str|None: Key of the highest category reached, or None.
    """
    bet = Decimal(str(bet))
    if bet <= 0 or total_win <= 0:
        return None
    ratio = Decimal(str(total_win)) / bet
    reached = None
    for category in categories:
        if ratio >= Decimal(str(category['min_ratio'])):
            reached = category['key']
    return reached
