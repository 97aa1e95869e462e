import logging
from decimal import Decimal, InvalidOperation

from cascade_be.exceptions import InsufficientFundsException, ValidationException
from cascade_be.utils.win_calculator import quantize_money

logger = logging.getLogger(__name__)


class EconomyState:
    """
    Balance, bet level and autoplay counter for one player.

    Bets are always a member of the fixed bet-level table. Requests for other
    amounts are clamped, never rejected.

    Args:
        bet_levels (iterable): Ascending bet table.
        balance (Decimal): Starting balance.
        current_bet (Decimal, optional): Defaults to the first level; clamped if off-table.
        autoplay_remaining (int): Pending autoplay spins.
    """

    def __init__(self, bet_levels, balance, current_bet=None, autoplay_remaining=0):
        self.bet_levels = tuple(Decimal(str(b)) for b in bet_levels)
        if not self.bet_levels:
            raise ValueError("EconomyState requires at least one bet level")
        self.balance = quantize_money(Decimal(str(balance)))
        self.bet_index = 0
        if current_bet is not None:
            self.set_bet(current_bet)
        self.autoplay_remaining = max(0, int(autoplay_remaining))

    @property
    def current_bet(self):
        return self.bet_levels[self.bet_index]

    def can_afford_bet(self):
        return self.balance >= self.current_bet

    def place_bet(self, free_spin=False):
        """
        Debit the current bet, unless a free spin is being consumed.

        Raises:
            InsufficientFundsException: Balance below the bet. Nothing is mutated.

        Returns:
            Decimal: Amount debited.
        """
        if free_spin:
            return Decimal('0.00')
        if not self.can_afford_bet():
            raise InsufficientFundsException(
                details={'balance': str(self.balance), 'bet': str(self.current_bet)}
            )
        self.balance -= self.current_bet
        return self.current_bet

    def settle(self, total_win, session=None):
        """Credit a spin's win; also add it to an active free-spins session."""
        total_win = quantize_money(total_win)
        if total_win < 0:
            raise ValidationException("Settlement amount cannot be negative", details={'total_win': str(total_win)})
        self.balance += total_win
        if session is not None and session.active:
            session.total_win = quantize_money(session.total_win + total_win)
        return self.balance

    def _nearest_index(self, amount):
        best_index = 0
        best_distance = None
        for i, level in enumerate(self.bet_levels):
            distance = abs(level - amount)
            # Strict comparison keeps the lower level on ties
            if best_distance is None or distance < best_distance:
                best_index, best_distance = i, distance
        return best_index

    def set_bet(self, amount):
        """
        Select a bet level. Off-table amounts clamp to the nearest level.

        Returns:
            Decimal: The bet now in effect.
        """
        try:
            requested = Decimal(str(amount))
            if not requested.is_finite():
                raise InvalidOperation(amount)
        except (InvalidOperation, ValueError, TypeError):
            logger.warning(f"Unparseable bet request {amount!r}; keeping {self.current_bet}")
            return self.current_bet
        if requested in self.bet_levels:
            self.bet_index = self.bet_levels.index(requested)
        else:
            self.bet_index = self._nearest_index(requested)
            logger.warning(f"Bet {requested} is not a valid level; clamped to {self.current_bet}")
        return self.current_bet

    def set_bet_index(self, index):
        clamped = min(max(int(index), 0), len(self.bet_levels) - 1)
        if clamped != index:
            logger.warning(f"Bet index {index} out of range; clamped to {clamped}")
        self.bet_index = clamped
        return self.current_bet

    def adjust_bet(self, direction):
        step = 1 if direction > 0 else -1 if direction < 0 else 0
        return self.set_bet_index(self.bet_index + step)

    @property
    def autoplay_active(self):
        return self.autoplay_remaining > 0

    def start_autoplay(self, spins):
        self.autoplay_remaining = max(0, int(spins))
        return self.autoplay_remaining

    def stop_autoplay(self):
        self.autoplay_remaining = 0

    def decrement_autoplay(self):
        if self.autoplay_remaining > 0:
            self.autoplay_remaining -= 1
        return self.autoplay_remaining

    def snapshot(self):
        return {
            'balance': self.balance,
            'bet_index': self.bet_index,
            'autoplay_remaining': self.autoplay_remaining,
        }

    def restore(self, snapshot):
        self.balance = snapshot['balance']
        self.bet_index = snapshot['bet_index']
        self.autoplay_remaining = snapshot['autoplay_remaining']
