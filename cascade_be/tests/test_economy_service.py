import logging
from decimal import Decimal

import pytest

from cascade_be.exceptions import InsufficientFundsException, ValidationException
from cascade_be.services.bonus_service import FreeSpinsSession
from cascade_be.services.economy_service import EconomyState
from cascade_be.utils.game_config import load_game_settings
from cascade_be.tests.helpers import GAME


@pytest.fixture
def economy():
    settings = load_game_settings(GAME)
    return EconomyState(settings.bet_levels, Decimal('100.00'), current_bet=settings.default_bet)


class TestBetting:

    def test_place_bet_debits(self, economy):
        assert economy.place_bet() == Decimal('1.00')
        assert economy.balance == Decimal('99.00')

    def test_free_spin_is_not_debited(self, economy):
        assert economy.place_bet(free_spin=True) == Decimal('0.00')
        assert economy.balance == Decimal('100.00')

    def test_insufficient_funds_leaves_state_untouched(self):
        economy = EconomyState(['0.20', '1.00'], Decimal('0.50'), current_bet='1.00')
        before = economy.snapshot()
        with pytest.raises(InsufficientFundsException) as excinfo:
            economy.place_bet()
        assert excinfo.value.status_code == 400
        assert economy.snapshot() == before

    def test_exact_balance_can_be_bet(self):
        economy = EconomyState(['1.00'], Decimal('1.00'), current_bet='1.00')
        economy.place_bet()
        assert economy.balance == Decimal('0.00')
        assert not economy.can_afford_bet()

    def test_settle_credits_and_feeds_active_session(self, economy):
        session = FreeSpinsSession(active=True, remaining=3, total_win=Decimal('5.00'))
        economy.settle(Decimal('12.345'), session)
        assert economy.balance == Decimal('112.35')
        assert session.total_win == Decimal('17.35')

    def test_settle_ignores_inactive_session(self, economy):
        session = FreeSpinsSession()
        economy.settle(Decimal('3.00'), session)
        assert session.total_win == Decimal('0.00')

    def test_negative_settlement_rejected(self, economy):
        with pytest.raises(ValidationException):
            economy.settle(Decimal('-1.00'))
        assert economy.balance == Decimal('100.00')


class TestBetLevels:

    def test_exact_level(self, economy):
        assert economy.set_bet(Decimal('5.00')) == Decimal('5.00')
        assert economy.set_bet('0.4') == Decimal('0.40')

    @pytest.mark.parametrize('requested, expected', [
        ('0.30', '0.20'),   # tie goes to the lower level
        ('0.31', '0.40'),
        ('1.49', '1.00'),
        ('1000', '200.00'),
        ('-5', '0.20'),
        ('0', '0.20'),
    ])
    def test_off_table_amounts_clamp(self, economy, requested, expected, caplog):
        with caplog.at_level(logging.WARNING):
            assert economy.set_bet(requested) == Decimal(expected)
        assert 'clamped' in caplog.text

    @pytest.mark.parametrize('requested', ['abc', None, 'NaN', 'Infinity'])
    def test_unparseable_bet_keeps_current(self, economy, requested):
        assert economy.set_bet(requested) == Decimal('1.00')

    def test_bet_index_clamps(self, economy):
        assert economy.set_bet_index(99) == Decimal('200.00')
        assert economy.set_bet_index(-3) == Decimal('0.20')

    def test_adjust_bet_steps_and_stops_at_ends(self, economy):
        assert economy.adjust_bet(1) == Decimal('2.00')
        assert economy.adjust_bet(-1) == Decimal('1.00')
        economy.set_bet_index(0)
        assert economy.adjust_bet(-1) == Decimal('0.20')

    def test_constructor_clamps_current_bet(self):
        economy = EconomyState(['0.20', '1.00'], '10', current_bet='0.70')
        assert economy.current_bet == Decimal('1.00')
        assert economy.balance == Decimal('10.00')
        with pytest.raises(ValueError):
            EconomyState([], '10')


class TestAutoplayCounter:

    def test_start_stop_and_decrement(self, economy):
        assert not economy.autoplay_active
        economy.start_autoplay(2)
        assert economy.autoplay_active
        assert economy.decrement_autoplay() == 1
        assert economy.decrement_autoplay() == 0
        assert economy.decrement_autoplay() == 0
        economy.start_autoplay(5)
        economy.stop_autoplay()
        assert economy.autoplay_remaining == 0

    def test_snapshot_restore(self, economy):
        economy.start_autoplay(3)
        saved = economy.snapshot()
        economy.place_bet()
        economy.set_bet('20.00')
        economy.decrement_autoplay()
        economy.restore(saved)
        assert economy.balance == Decimal('100.00')
        assert economy.current_bet == Decimal('1.00')
        assert economy.autoplay_remaining == 3
