import logging
from decimal import Decimal

logger = logging.getLogger(__name__)


class FreeSpinsSession:
    """Free-spins session counters. ``multiplier_accumulator`` starts at 1 and only grows."""

    def __init__(self, active=False, remaining=0, multiplier_accumulator=1, total_win=None):
        self.active = active
        self.remaining = remaining
        self.multiplier_accumulator = multiplier_accumulator
        self.total_win = total_win if total_win is not None else Decimal('0.00')

    def copy(self):
        return FreeSpinsSession(self.active, self.remaining, self.multiplier_accumulator, self.total_win)

    def to_dict(self):
        return {
            'active': self.active,
            'remaining': self.remaining,
            'multiplier_accumulator': self.multiplier_accumulator,
            'total_win': self.total_win,
        }

    @classmethod
    def from_dict(cls, data):
        if not data:
            return cls()
        return cls(
            active=bool(data.get('active', False)),
            remaining=int(data.get('remaining', 0)),
            multiplier_accumulator=int(data.get('multiplier_accumulator', 1)),
            total_win=Decimal(str(data.get('total_win', '0.00'))),
        )


class BonusStateMachine:
    """
    Scatter-driven free spins plus the Infinity Power feature.

    States are NORMAL and FREE_SPINS. Transitions happen only at spin phase
    boundaries, driven by the spin controller.
    """
    NORMAL = 'NORMAL'
    FREE_SPINS = 'FREE_SPINS'

    def __init__(self, settings, session=None):
        self.settings = settings
        self.session = session if session is not None else FreeSpinsSession()

    @property
    def state(self):
        return self.FREE_SPINS if self.session.active else self.NORMAL

    @property
    def in_free_spins(self):
        return self.session.active

    def award_for(self, scatter_count):
        """Spins awarded for a scatter count; the largest configured key not above the count wins."""
        awarded = 0
        for count, spins in self.settings.free_spins_awards.items():
            if scatter_count >= count:
                awarded = spins
        return awarded

    def evaluate_scatters(self, scatter_count):
        """
        Run the trigger/retrigger rules for the scatters on a settled grid.

        Args:
            scatter_count (int): Scatter symbols on the grid.

        Returns:
            dict: ``{'triggered': int|None, 'retriggered': int|None}``
        """
        result = {'triggered': None, 'retriggered': None}
        if not self.session.active:
            if scatter_count >= self.settings.free_spins_trigger_count:
                spins = self.award_for(scatter_count)
                self.session = FreeSpinsSession(active=True, remaining=spins, multiplier_accumulator=1)
                result['triggered'] = spins
                logger.info(f"Free spins triggered by {scatter_count} scatters: {spins} spins awarded")
        elif scatter_count >= self.settings.retrigger_count:
            extra = scatter_count * self.settings.retrigger_spins_per_scatter
            self.session.remaining += extra
            result['retriggered'] = extra
            logger.info(f"Free spins retriggered by {scatter_count} scatters: +{extra} spins ({self.session.remaining} remaining)")
        return result

    def consume_free_spin(self):
        """Take one spin off the session at spin start. Returns False when no free spin is available."""
        if not self.session.active or self.session.remaining <= 0:
            return False
        self.session.remaining -= 1
        return True

    def accumulate_cascade_multiplier(self, step_index, generator):
        """
        During free spins, every avalanche step after the first adds one draw
        from the multiplier table to the session accumulator.

        Returns:
            int|None: The value added, or None when nothing was drawn.
        """
        if not self.session.active or step_index < 2:
            return None
        value = generator.choose(self.settings.random_multipliers)
        self.session.multiplier_accumulator += value
        logger.debug(f"Cascade {step_index}: free spins accumulator +{value} -> {self.session.multiplier_accumulator}")
        return value

    def finish_spin(self):
        """
        Close the session when the completed spin used the last free spin.

        Returns:
            Decimal|None: The session's total win when it ended on this spin.
        """
        if self.session.active and self.session.remaining == 0:
            ended_total = self.session.total_win
            logger.info(f"Free spins session ended with total win {ended_total}")
            self.session = FreeSpinsSession()
            return ended_total
        return None

    def check_infinity_power(self, grid):
        """True when every required kind is present anywhere on the grid."""
        present = grid.kinds_present()
        return all(symbol_id in present for symbol_id in self.settings.infinity_power_required)

    def apply_infinity_power(self, grid, generator):
        """
        Put one uniformly drawn multiplier on one uniformly chosen occupied cell.

        Returns:
            dict: ``{'column', 'row', 'multiplier'}``
        """
        cells = grid.occupied_cells()
        col, row = cells[generator.choose_index(len(cells))]
        multiplier = generator.choose(self.settings.random_multipliers)
        grid.get(col, row).runtime_multiplier = multiplier
        logger.info(f"Infinity Power applied x{multiplier} at column {col}, row {row}")
        return {'column': col, 'row': row, 'multiplier': multiplier}

    def snapshot(self):
        return self.session.copy()

    def restore(self, session):
        self.session = session.copy()
