from decimal import Decimal

import pytest
from marshmallow import ValidationError

from cascade_be.schemas import (
    AutoplayRequestSchema, BetRequestSchema, EconomySnapshotSchema, SpinOutcomeSchema
)
from cascade_be.services.bonus_service import BonusStateMachine
from cascade_be.services.economy_service import EconomyState
from cascade_be.services.persistence_service import PersistenceService
from cascade_be.services.spin_session import SpinController
from cascade_be.utils.game_config import load_game_settings
from cascade_be.utils.spin_handler import handle_spin
from cascade_be.tests.helpers import GAME, StubGenerator, cluster_cells, layout_with


def _snapshot(**overrides):
    snapshot = {
        'balance': Decimal('250.40'),
        'current_bet': Decimal('2.00'),
        'free_spins_session': {
            'active': True, 'remaining': 7, 'multiplier_accumulator': 12, 'total_win': Decimal('88.10'),
        },
        'autoplay_remaining': 4,
    }
    snapshot.update(overrides)
    return snapshot


class TestEconomySnapshotSchema:

    def test_round_trip(self):
        schema = EconomySnapshotSchema()
        dumped = schema.dump(_snapshot())
        assert dumped['balance'] == '250.40'
        assert schema.load(dumped) == _snapshot()

    def test_round_trip_through_core_state(self):
        settings = load_game_settings(GAME)
        economy, bonus = PersistenceService.build_state(_snapshot(), settings)
        assert economy.current_bet == Decimal('2.00')
        assert bonus.session.multiplier_accumulator == 12
        assert PersistenceService.snapshot_from_state(economy, bonus) == _snapshot()

    def test_inactive_session_with_spins_rejected(self):
        data = EconomySnapshotSchema().dump(_snapshot())
        data['free_spins_session']['active'] = False
        with pytest.raises(ValidationError) as excinfo:
            EconomySnapshotSchema().load(data)
        assert 'free_spins_session' in excinfo.value.messages

    @pytest.mark.parametrize('field, value', [
        ('balance', '-1.00'),
        ('current_bet', '0'),
        ('autoplay_remaining', -1),
    ])
    def test_invalid_values_rejected(self, field, value):
        data = EconomySnapshotSchema().dump(_snapshot())
        data[field] = value
        with pytest.raises(ValidationError):
            EconomySnapshotSchema().load(data)


class TestRequestSchemas:

    def test_bet_request_needs_exactly_one_field(self):
        schema = BetRequestSchema()
        assert schema.load({'bet': '0.30'})['bet'] == Decimal('0.30')
        assert schema.load({'direction': -1})['direction'] == -1
        with pytest.raises(ValidationError):
            schema.load({})
        with pytest.raises(ValidationError):
            schema.load({'bet': '1.00', 'direction': 1})
        with pytest.raises(ValidationError):
            schema.load({'direction': 2})

    def test_autoplay_spins_range(self):
        schema = AutoplayRequestSchema()
        assert schema.load({})['spins'] is None
        assert schema.load({'spins': 25})['spins'] == 25
        with pytest.raises(ValidationError):
            schema.load({'spins': 0})


def test_spin_outcome_dump_is_json_ready():
    settings = load_game_settings(GAME)
    economy = EconomyState(settings.bet_levels, Decimal('100.00'), current_bet=settings.default_bet)
    layout = layout_with(settings, {cell: 'space_gem' for cell in cluster_cells()})
    controller = SpinController(settings, economy, BonusStateMachine(settings), StubGenerator(settings, layout))

    dumped = SpinOutcomeSchema().dump(handle_spin(controller).to_dict())

    assert dumped['total_win'] == '2.00'
    assert dumped['balance_after'] == '101.00'
    assert dumped['cascade_count'] == 1
    step = dumped['cascade_steps'][0]
    assert step['matches'][0] == {'symbol_id': 'space_gem', 'size': 8, 'cells': [list(c) for c in sorted(cluster_cells())]}
    assert step['breakdown'][0]['win'] == '2.00'
    assert dumped['final_grid'][0][0] == 'soul_gem'
    assert dumped['infinity_power'] is None
