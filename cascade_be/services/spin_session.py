"""
Phased spin transaction.

A spin runs as a sequence of discrete phases. Each call to ``advance()``
executes exactly one phase and returns a ``PhaseEvent``; the caller (usually a
presentation layer) must ``acknowledge()`` that phase before the next one may
run. The controller owns the grid and the spin-in-progress flag for the whole
transaction.
"""
import logging
from decimal import Decimal

from cascade_be.exceptions import (
    GridInvariantViolation,
    PhaseOrderException,
    RandomSourceUnavailableException,
    SpinInProgressException,
)
from cascade_be.utils.cascade_engine import CascadeStep, compact_and_refill, resolve_step
from cascade_be.utils.grid import Grid
from cascade_be.utils.match_engine import find_matches, mark_matched
from cascade_be.utils.win_calculator import get_win_category, quantize_money, score

logger = logging.getLogger(__name__)


class SpinPhase:
    POPULATE = 'populate'
    EVALUATE = 'evaluate'
    REMOVE = 'remove'
    REFILL = 'refill'
    BONUS = 'bonus'
    SETTLE = 'settle'
    COMPLETE = 'complete'


class PhaseEvent:
    def __init__(self, phase, payload=None):
        self.phase = phase
        self.payload = payload or {}

    def __repr__(self):
        return f"<PhaseEvent {self.phase}>"


class SpinOutcome:
    """Everything a caller needs to present or persist a finished spin."""

    def __init__(self, bet, is_free_spin):
        self.bet = bet
        self.is_free_spin = is_free_spin
        self.cascade_steps = []
        self.base_win = Decimal('0.00')
        self.free_spins_multiplier = 1
        self.total_win = Decimal('0.00')
        self.win_category = None
        self.scatter_count = 0
        self.triggered_free_spins = None
        self.retriggered_spins = None
        self.infinity_power = None
        self.free_spins_session_ended = None
        self.free_spins_remaining = 0
        self.autoplay_remaining = 0
        self.balance_after = None
        self.final_grid = None
        self.cascade_limit_reached = False

    @property
    def cascade_count(self):
        return len(self.cascade_steps)

    def to_dict(self):
        return {
            'bet': self.bet,
            'is_free_spin': self.is_free_spin,
            'cascade_steps': [step.to_dict() for step in self.cascade_steps],
            'cascade_count': self.cascade_count,
            'base_win': self.base_win,
            'free_spins_multiplier': self.free_spins_multiplier,
            'total_win': self.total_win,
            'win_category': self.win_category,
            'scatter_count': self.scatter_count,
            'triggered_free_spins': self.triggered_free_spins,
            'retriggered_spins': self.retriggered_spins,
            'infinity_power': self.infinity_power,
            'free_spins_session_ended': self.free_spins_session_ended,
            'free_spins_remaining': self.free_spins_remaining,
            'autoplay_remaining': self.autoplay_remaining,
            'balance_after': self.balance_after,
            'final_grid': self.final_grid,
            'cascade_limit_reached': self.cascade_limit_reached,
        }


class SpinController:
    """
    Runs spins against one EconomyState and one BonusStateMachine.

    Args:
        settings (GameSettings): Game rules.
        economy (EconomyState): Balance and bet state, mutated only at phase boundaries.
        bonus (BonusStateMachine): Free spins and Infinity Power.
        generator (SymbolGenerator): The single source of randomness for the spin.
        listener (callable, optional): Receives every PhaseEvent as it is produced.
    """

    def __init__(self, settings, economy, bonus, generator, listener=None):
        self.settings = settings
        self.economy = economy
        self.bonus = bonus
        self.generator = generator
        self.listener = listener
        self.grid = Grid(settings.columns, settings.rows)
        self.spin_in_progress = False
        self.outcome = None
        self._next_phase = None
        self._awaiting_ack = None
        self._rollback = None
        self._current_step = None
        self._stop_autoplay_requested = False

    @property
    def awaiting_acknowledgement(self):
        return self._awaiting_ack

    def _ensure_idle(self, command):
        if self.spin_in_progress:
            raise SpinInProgressException(
                f"Cannot {command} while a spin is in progress", details={'phase': self._next_phase}
            )

    def set_bet(self, amount):
        self._ensure_idle('change the bet')
        return self.economy.set_bet(amount)

    def set_bet_index(self, index):
        self._ensure_idle('change the bet')
        return self.economy.set_bet_index(index)

    def adjust_bet(self, direction):
        self._ensure_idle('change the bet')
        return self.economy.adjust_bet(direction)

    def start_autoplay(self, spins=None):
        self._ensure_idle('start autoplay')
        return self.economy.start_autoplay(self.settings.autoplay_default_spins if spins is None else spins)

    def stop_autoplay(self):
        """Stop autoplay. During a spin the counter is cleared once the spin completes."""
        if self.spin_in_progress:
            self._stop_autoplay_requested = True
        else:
            self.economy.stop_autoplay()

    def begin_spin(self, bet=None):
        """
        Start a spin transaction.

        Args:
            bet (Decimal, optional): Bet request; clamped to the bet table.

        Raises:
            SpinInProgressException: Another spin has not completed.
            InsufficientFundsException: Balance below the bet and no free spin
                available. State is left untouched.
        """
        if self.spin_in_progress:
            raise SpinInProgressException(details={'phase': self._next_phase})

        self._rollback = (self.grid.copy(), self.economy.snapshot(), self.bonus.snapshot())
        try:
            if bet is not None:
                self.economy.set_bet(bet)
            is_free_spin = self.bonus.consume_free_spin()
            self.economy.place_bet(free_spin=is_free_spin)
        except Exception:
            self._restore_rollback()
            raise

        self.spin_in_progress = True
        self.outcome = SpinOutcome(self.economy.current_bet, is_free_spin)
        self._current_step = None
        self._awaiting_ack = None
        self._next_phase = SpinPhase.POPULATE
        logger.info(f"Spin started: bet={self.economy.current_bet} free_spin={is_free_spin} balance={self.economy.balance}")
        return self.outcome

    def acknowledge(self, phase):
        """Signal that the presentation of ``phase`` has finished."""
        if self._awaiting_ack is None:
            raise PhaseOrderException(f"No phase is awaiting acknowledgement (got '{phase}')")
        if phase != self._awaiting_ack:
            raise PhaseOrderException(
                f"Acknowledged phase '{phase}' but '{self._awaiting_ack}' is pending",
                details={'pending': self._awaiting_ack, 'acknowledged': phase}
            )
        self._awaiting_ack = None

    def advance(self):
        """
        Execute the next phase.

        Returns:
            PhaseEvent

        Raises:
            PhaseOrderException: No spin running, or the previous phase is unacknowledged.
            RandomSourceUnavailableException: The spin was rolled back.
            GridInvariantViolation: The spin was rolled back.
        """
        if not self.spin_in_progress:
            raise PhaseOrderException("No spin in progress")
        if self._awaiting_ack is not None:
            raise PhaseOrderException(
                f"Phase '{self._awaiting_ack}' has not been acknowledged",
                details={'pending': self._awaiting_ack}
            )

        phase = self._next_phase
        handler = getattr(self, f'_phase_{phase}')
        try:
            payload = handler()
        except (RandomSourceUnavailableException, GridInvariantViolation) as e:
            logger.error(f"Spin failed during '{phase}' phase, rolling back: {e.status_message}")
            self._abort()
            raise
        except Exception:
            logger.exception(f"Unexpected error during '{phase}' phase, rolling back")
            self._abort()
            raise

        event = PhaseEvent(phase, payload)
        if phase != SpinPhase.COMPLETE:
            self._awaiting_ack = phase
        if self.listener is not None:
            self.listener(event)
        return event

    def _abort(self):
        self._restore_rollback()
        if self._stop_autoplay_requested:
            self.economy.stop_autoplay()
            self._stop_autoplay_requested = False
        self.spin_in_progress = False
        self.outcome = None
        self._next_phase = None
        self._current_step = None
        self._rollback = None

    def _restore_rollback(self):
        grid, economy, session = self._rollback
        self.grid.restore(grid)
        self.economy.restore(economy)
        self.bonus.restore(session)

    def _phase_populate(self):
        self.grid.reset()
        self.generator.populate(self.grid)
        if self.bonus.check_infinity_power(self.grid):
            self.outcome.infinity_power = self.bonus.apply_infinity_power(self.grid, self.generator)
        self._next_phase = SpinPhase.EVALUATE
        return {'grid': self.grid.snapshot(), 'infinity_power': self.outcome.infinity_power}

    def _phase_evaluate(self):
        matches = find_matches(self.grid, self.settings.min_match_count)
        if not matches:
            self._next_phase = SpinPhase.BONUS
            return {'matches': []}

        if self.outcome.cascade_count >= self.settings.max_cascade_steps:
            logger.error(f"Cascade limit of {self.settings.max_cascade_steps} steps reached; stopping avalanche")
            self.outcome.cascade_limit_reached = True
            self._next_phase = SpinPhase.BONUS
            return {'matches': [], 'cascade_limit_reached': True}

        total, breakdown = score(matches, self.outcome.bet, self.grid, self.settings.catalog,
                                 self.settings.min_match_count)
        mark_matched(self.grid, matches)
        step = CascadeStep(self.outcome.cascade_count + 1, matches, breakdown, total)
        self.outcome.cascade_steps.append(step)
        self.outcome.base_win += total
        self._current_step = step
        self._next_phase = SpinPhase.REMOVE
        return step.to_dict()

    def _phase_remove(self):
        self._current_step.removed = resolve_step(self.grid, self._current_step.matches)
        self._next_phase = SpinPhase.REFILL
        return {'index': self._current_step.index, 'removed': self._current_step.removed}

    def _phase_refill(self):
        step = self._current_step
        step.refilled = compact_and_refill(self.grid, self.generator)
        step.multiplier_added = self.bonus.accumulate_cascade_multiplier(step.index, self.generator)
        self._next_phase = SpinPhase.EVALUATE
        return {
            'index': step.index,
            'grid': self.grid.snapshot(),
            'refilled': [list(cell) for cell in step.refilled],
            'multiplier_added': step.multiplier_added,
        }

    def _phase_bonus(self):
        self.grid.assert_settled()
        scatter_count = self.grid.count_kind(self.settings.catalog.scatter.id)
        result = self.bonus.evaluate_scatters(scatter_count)
        self.outcome.scatter_count = scatter_count
        self.outcome.triggered_free_spins = result['triggered']
        self.outcome.retriggered_spins = result['retriggered']
        self._next_phase = SpinPhase.SETTLE
        return {'scatter_count': scatter_count, **result}

    def _phase_settle(self):
        outcome = self.outcome
        total = outcome.base_win
        if outcome.is_free_spin:
            outcome.free_spins_multiplier = self.bonus.session.multiplier_accumulator
            total = quantize_money(total * outcome.free_spins_multiplier)
        outcome.total_win = quantize_money(total)

        self.economy.settle(outcome.total_win, self.bonus.session)
        outcome.free_spins_session_ended = self.bonus.finish_spin()
        if not outcome.is_free_spin:
            self.economy.decrement_autoplay()

        outcome.win_category = get_win_category(outcome.total_win, outcome.bet, self.settings.win_categories)
        outcome.free_spins_remaining = self.bonus.session.remaining
        outcome.autoplay_remaining = self.economy.autoplay_remaining
        outcome.balance_after = self.economy.balance
        outcome.final_grid = self.grid.snapshot()
        logger.info(f"Spin settled: win={outcome.total_win} cascades={outcome.cascade_count} balance={outcome.balance_after}")
        self._next_phase = SpinPhase.COMPLETE
        return {
            'total_win': outcome.total_win,
            'win_category': outcome.win_category,
            'balance': outcome.balance_after,
            'free_spins_session_ended': outcome.free_spins_session_ended,
        }

    def _phase_complete(self):
        if self._stop_autoplay_requested:
            self.economy.stop_autoplay()
            self.outcome.autoplay_remaining = 0
            self._stop_autoplay_requested = False
        self.spin_in_progress = False
        self._next_phase = None
        self._rollback = None
        return {'outcome': self.outcome}
