import logging

from cascade_be.services.spin_session import SpinController, SpinPhase
from cascade_be.utils.symbol_generator import SymbolGenerator

logger = logging.getLogger(__name__)


def handle_spin(controller, bet=None):
    """
    Run one complete spin without a presentation layer.

    Each phase is acknowledged as soon as it is produced, so the phase order
    is the same one a presentation layer would drive. The controller's
    listener, if any, still receives every event.

    Args:
        controller (SpinController): Controller holding economy and bonus state.
        bet (Decimal, optional): Bet request, clamped to the bet table.

    Returns:
        SpinOutcome: The settled spin.

    Raises:
        SpinInProgressException: A spin is already running on this controller.
        InsufficientFundsException: Not enough balance and no free spin available.
        RandomSourceUnavailableException: State was rolled back to before the spin.
    """
    controller.begin_spin(bet)
    while True:
        event = controller.advance()
        if event.phase == SpinPhase.COMPLETE:
            return event.payload['outcome']
        controller.acknowledge(event.phase)


def create_controller(settings, economy, bonus, random_source=None, listener=None):
    generator = SymbolGenerator(settings.catalog, settings.scatter_probability, random_source)
    return SpinController(settings, economy, bonus, generator, listener=listener)


def handle_player_spin(player_id, settings, persistence, bet=None, random_source=None):
    """
    Spin for a persisted player.

    Claims the player's spin flag, rebuilds core state from the stored
    snapshot, runs the spin, then saves the new snapshot and a SpinRecord in
    one commit. The flag is released whether or not the spin succeeded; a
    failed spin leaves the stored snapshot untouched.

    Args:
        player_id (int): PlayerState id.
        settings (GameSettings): Game rules.
        persistence (PersistenceService): Storage collaborator.
        bet (Decimal, optional): Bet request.
        random_source: Optional random source, used for reproducible spins.

    Returns:
        tuple: (SpinOutcome, PlayerState, SpinRecord)
    """
    persistence.mark_spin_in_progress(player_id)
    try:
        player = persistence.get_player(player_id)
        snapshot = persistence.load_snapshot(player)
        economy, bonus = persistence.build_state(snapshot, settings)
        controller = create_controller(settings, economy, bonus, random_source)

        outcome = handle_spin(controller, bet)

        # Autoplay may have been stopped by another request while spinning
        persistence.session.refresh(player, attribute_names=['autoplay_remaining'])
        if player.autoplay_remaining == 0 and economy.autoplay_active:
            controller.stop_autoplay()
            outcome.autoplay_remaining = 0

        persistence.save_snapshot(player, persistence.snapshot_from_state(economy, bonus), commit=False)
        record = persistence.record_spin(player, outcome, commit=True)
        logger.info(f"Player {player_id} spin {record.id}: bet={outcome.bet} win={outcome.total_win} free_spin={outcome.is_free_spin}")
        return outcome, player, record
    except Exception:
        persistence.session.rollback()
        raise
    finally:
        persistence.clear_spin_in_progress(player_id)
