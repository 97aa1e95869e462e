from flask import Blueprint, request, jsonify, current_app

from cascade_be.exceptions import SpinInProgressException, ValidationException
from cascade_be.models import to_cents
from cascade_be.schemas import (
    AutoplayRequestSchema, BetRequestSchema, CreatePlayerSchema, PlayerSchema,
    SpinOutcomeSchema, SpinRecordSchema, SpinRequestSchema
)
from cascade_be.services.persistence_service import PersistenceService
from cascade_be.utils.spin_handler import handle_player_spin

slots_bp = Blueprint('slots', __name__, url_prefix='/api')

player_schema = PlayerSchema()
spin_outcome_schema = SpinOutcomeSchema()


def _json_body():
    data = request.get_json(silent=True)
    if data is None:
        if request.data:
            raise ValidationException("Invalid request format: Not valid JSON.")
        return {}
    if not isinstance(data, dict):
        raise ValidationException("Invalid request format: JSON object expected.")
    return data


def _settings():
    return current_app.extensions['game_settings']


def _dump_player(player, persistence):
    snapshot = persistence.load_snapshot(player)
    snapshot.update({
        'id': player.id,
        'display_name': player.display_name,
        'game_short_name': player.game_short_name,
        'spin_in_progress': player.spin_in_progress,
    })
    return player_schema.dump(snapshot)


def _load_idle_player(persistence, player_id, command):
    player = persistence.get_player(player_id)
    if player.spin_in_progress:
        raise SpinInProgressException(f"Cannot {command} while a spin is in progress",
                                      details={'player_id': player_id})
    return player


@slots_bp.route('/slots/config', methods=['GET'])
def get_slot_config():
    """Client-safe game configuration. Generation weights are not exposed."""
    return jsonify({'status': True, 'config': _settings().to_client_dict()}), 200


@slots_bp.route('/players', methods=['POST'])
def create_player():
    data = CreatePlayerSchema().load(_json_body())
    persistence = PersistenceService()
    player = persistence.create_player(_settings(), current_app.config['STARTING_BALANCE'],
                                       display_name=data.get('display_name'))
    return jsonify({'status': True, 'player': _dump_player(player, persistence)}), 201


@slots_bp.route('/players/<int:player_id>', methods=['GET'])
def get_player(player_id):
    persistence = PersistenceService()
    player = persistence.get_player(player_id)
    return jsonify({'status': True, 'player': _dump_player(player, persistence)}), 200


@slots_bp.route('/players/<int:player_id>/spin', methods=['POST'])
def spin(player_id):
    data = SpinRequestSchema().load(_json_body())
    persistence = PersistenceService()
    outcome, player, record = handle_player_spin(
        player_id, _settings(), persistence, bet=data.get('bet'),
        random_source=current_app.extensions.get('random_source')
    )
    return jsonify({
        'status': True,
        'spin_id': record.id,
        'result': spin_outcome_schema.dump(outcome.to_dict()),
        'player': _dump_player(player, persistence),
    }), 200


@slots_bp.route('/players/<int:player_id>/bet', methods=['POST'])
def change_bet(player_id):
    data = BetRequestSchema().load(_json_body())
    persistence = PersistenceService()
    player = _load_idle_player(persistence, player_id, 'change the bet')
    snapshot = persistence.load_snapshot(player)
    economy, _ = persistence.build_state(snapshot, _settings())

    if data.get('bet') is not None:
        economy.set_bet(data['bet'])
    else:
        economy.adjust_bet(data['direction'])

    persistence.update_idle_player(player_id, {'current_bet': to_cents(economy.current_bet)}, 'change the bet')
    return jsonify({'status': True, 'player': _dump_player(player, persistence)}), 200


@slots_bp.route('/players/<int:player_id>/autoplay', methods=['POST'])
def start_autoplay(player_id):
    data = AutoplayRequestSchema().load(_json_body())
    persistence = PersistenceService()
    player = _load_idle_player(persistence, player_id, 'start autoplay')
    spins = data.get('spins') or _settings().autoplay_default_spins
    persistence.update_idle_player(player_id, {'autoplay_remaining': spins}, 'start autoplay')
    current_app.logger.info(f"Player {player_id} started autoplay for {spins} spins")
    return jsonify({
        'status': True,
        'player': _dump_player(player, persistence),
        'delay_ms': _settings().autoplay_delay_ms,
    }), 200


@slots_bp.route('/players/<int:player_id>/autoplay', methods=['DELETE'])
def stop_autoplay(player_id):
    # Allowed mid-spin: only suppresses the next request
    persistence = PersistenceService()
    player = persistence.get_player(player_id)
    player.autoplay_remaining = 0
    persistence.session.commit()
    current_app.logger.info(f"Player {player_id} stopped autoplay")
    return jsonify({'status': True, 'player': _dump_player(player, persistence)}), 200


@slots_bp.route('/players/<int:player_id>/spins', methods=['GET'])
def spin_history(player_id):
    persistence = PersistenceService()
    player = persistence.get_player(player_id)
    limit = min(max(request.args.get('limit', 20, type=int), 1), 100)
    records = persistence.recent_spins(player, limit)
    return jsonify({'status': True, 'spins': SpinRecordSchema(many=True).dump(records)}), 200
