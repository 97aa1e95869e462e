from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from cascade_be.exceptions import NotFoundException, SpinInProgressException
from cascade_be.error_codes import ErrorCodes
from cascade_be.models import db, PlayerState, SpinRecord, Transaction, to_cents, from_cents
from cascade_be.schemas import EconomySnapshotSchema, SpinOutcomeSchema
from cascade_be.services.bonus_service import BonusStateMachine, FreeSpinsSession
from cascade_be.services.economy_service import EconomyState

snapshot_schema = EconomySnapshotSchema()
spin_outcome_schema = SpinOutcomeSchema()


class PersistenceService:
    """
    Loads and saves player economy state.

    The core only ever sees the snapshot shape
    ``{balance, current_bet, free_spins_session, autoplay_remaining}``;
    translating it to and from table rows happens here.
    """

    def __init__(self, session=None):
        self.session = session or db.session

    def create_player(self, settings, starting_balance, display_name=None):
        player = PlayerState(
            display_name=display_name,
            game_short_name=settings.short_name,
            balance=to_cents(starting_balance),
            current_bet=to_cents(settings.default_bet),
            autoplay_remaining=0,
        )
        self.session.add(player)
        self.session.commit()
        current_app.logger.info(f"Created player {player.id} for '{settings.short_name}' with balance {starting_balance}")
        return player

    def get_player(self, player_id):
        player = self.session.get(PlayerState, player_id)
        if player is None:
            raise NotFoundException(f"Player {player_id} not found", error_code=ErrorCodes.PLAYER_NOT_FOUND)
        return player

    def load_snapshot(self, player):
        """Return the player's state as a validated snapshot with Decimal money values."""
        raw = {
            'balance': str(from_cents(player.balance)),
            'current_bet': str(from_cents(player.current_bet)),
            'free_spins_session': {
                'active': player.free_spins_active,
                'remaining': player.free_spins_remaining,
                'multiplier_accumulator': player.free_spins_multiplier,
                'total_win': str(from_cents(player.free_spins_total_win)),
            },
            'autoplay_remaining': player.autoplay_remaining,
        }
        return snapshot_schema.load(raw)

    def save_snapshot(self, player, snapshot, commit=True):
        data = snapshot_schema.load(snapshot_schema.dump(snapshot))
        session_data = data['free_spins_session']
        player.balance = to_cents(data['balance'])
        player.current_bet = to_cents(data['current_bet'])
        player.autoplay_remaining = data['autoplay_remaining']
        player.free_spins_active = session_data['active']
        player.free_spins_remaining = session_data['remaining']
        player.free_spins_multiplier = session_data['multiplier_accumulator']
        player.free_spins_total_win = to_cents(session_data['total_win'])
        if commit:
            self.session.commit()
        return player

    @staticmethod
    def build_state(snapshot, settings):
        """Create the core EconomyState and BonusStateMachine from a snapshot."""
        economy = EconomyState(
            settings.bet_levels,
            snapshot['balance'],
            current_bet=snapshot['current_bet'],
            autoplay_remaining=snapshot['autoplay_remaining'],
        )
        bonus = BonusStateMachine(settings, FreeSpinsSession.from_dict(snapshot['free_spins_session']))
        return economy, bonus

    @staticmethod
    def snapshot_from_state(economy, bonus):
        return {
            'balance': economy.balance,
            'current_bet': economy.current_bet,
            'free_spins_session': bonus.session.to_dict(),
            'autoplay_remaining': economy.autoplay_remaining,
        }

    def record_spin(self, player, outcome, commit=True):
        """Store a SpinRecord plus its wager and win transactions."""
        record = SpinRecord(
            player_id=player.id,
            spin_result=spin_outcome_schema.dump(outcome.to_dict()),
            bet_amount=0 if outcome.is_free_spin else to_cents(outcome.bet),
            win_amount=to_cents(outcome.total_win),
            is_free_spin=outcome.is_free_spin,
            cascade_count=outcome.cascade_count,
            free_spins_multiplier=outcome.free_spins_multiplier,
        )
        self.session.add(record)
        self.session.flush()

        if not outcome.is_free_spin:
            self.session.add(Transaction(
                player_id=player.id, amount=-to_cents(outcome.bet), transaction_type='wager',
                spin_record_id=record.id
            ))
        if outcome.total_win > 0:
            self.session.add(Transaction(
                player_id=player.id, amount=to_cents(outcome.total_win), transaction_type='win',
                spin_record_id=record.id,
                details={'win_category': outcome.win_category, 'is_free_spin': outcome.is_free_spin}
            ))
        if commit:
            self.session.commit()
        return record

    def mark_spin_in_progress(self, player_id):
        """
        Atomically claim the player's spin slot.

        Raises:
            SpinInProgressException: Another request already holds it.
        """
        updated = PlayerState.query.filter_by(id=player_id, spin_in_progress=False).update(
            {'spin_in_progress': True}, synchronize_session=False
        )
        self.session.commit()
        if updated == 0:
            self.get_player(player_id)
            raise SpinInProgressException(details={'player_id': player_id})

    def update_idle_player(self, player_id, values, command='update the player'):
        """
        Write only the given columns, and only while no spin holds the flag.

        Balance and free-spins columns are never part of ``values``, so a spin
        that settled after the caller read the row keeps its result.

        Raises:
            SpinInProgressException: A spin claimed the player first.
        """
        updated = PlayerState.query.filter_by(id=player_id, spin_in_progress=False).update(
            values, synchronize_session=False
        )
        self.session.commit()
        if updated == 0:
            self.get_player(player_id)
            raise SpinInProgressException(f"Cannot {command} while a spin is in progress",
                                          details={'player_id': player_id})

    def clear_spin_in_progress(self, player_id):
        try:
            PlayerState.query.filter_by(id=player_id).update({'spin_in_progress': False}, synchronize_session=False)
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            current_app.logger.error(f"Failed to clear spin flag for player {player_id}", exc_info=True)
            raise

    def recent_spins(self, player, limit=20):
        return player.spins.order_by(SpinRecord.id.desc()).limit(limit).all()
