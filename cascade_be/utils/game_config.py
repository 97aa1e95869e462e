import json
import os
import logging
from decimal import Decimal, InvalidOperation

from cascade_be.utils.symbol_catalog import SymbolCatalog, SymbolKind

logger = logging.getLogger(__name__)

DEFAULT_SLOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'public', 'slots'))


def load_game_config(slot_short_name, base_dir=None):
    """
    Loads the game configuration JSON file for a given slot and validates its structure.

    Args:
        slot_short_name (str): The short name of the slot, used to find its configuration file.
        base_dir (str, optional): Directory holding '<short_name>/gameConfig.json'.
            Defaults to the package's 'public/slots' directory.

    Returns:
        dict: The loaded and validated game configuration object.

    Raises:
        FileNotFoundError: If the configuration file cannot be found.
        ValueError: If the JSON is malformed or the configuration structure is invalid.
        RuntimeError: For other unexpected errors during loading.
    """
    file_path = os.path.join(base_dir or DEFAULT_SLOT_DIR, slot_short_name, "gameConfig.json")

    if not os.path.exists(file_path) and base_dir:
        fallback_path = os.path.join(DEFAULT_SLOT_DIR, slot_short_name, "gameConfig.json")
        logger.warning("Configuration for '%s' not found at '%s', trying bundled config '%s'",
                       slot_short_name, file_path, fallback_path)
        file_path = fallback_path

    if not os.path.exists(file_path):
        raise FileNotFoundError(f"Configuration file not found for slot '{slot_short_name}' at {file_path}")

    try:
        with open(file_path, 'r') as f:
            config = json.load(f)
        _validate_game_config(config, slot_short_name)
        logger.info("Loaded game config for '%s' from %s", slot_short_name, file_path)
        return config
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {file_path}: {e.msg} (line {e.lineno}, col {e.colno})")
    except ValueError:
        raise
    except Exception as e:
        raise RuntimeError(f"Could not load game config for slot '{slot_short_name}': {str(e)}")


def _is_positive_int(value):
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _is_number(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _to_money(value):
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    return amount if amount.is_finite() else None


def _validate_game_config(config, slot_short_name):
    """
    Validates the structure and essential content of a cascade game configuration.

    Args:
        config (dict): The game configuration object (typically loaded from JSON).
        slot_short_name (str): The short name of the slot, used for clear error messaging.

    Raises:
        ValueError: If any validation check fails.
    """
    prefix = f"Config validation error for slot '{slot_short_name}'"

    if not isinstance(config, dict):
        raise ValueError(f"{prefix}: Root must be a dictionary.")
    game = config.get('game')
    if not isinstance(game, dict):
        raise ValueError(f"{prefix}: 'game' key must be a dictionary.")

    for key in ('name', 'short_name'):
        value = game.get(key)
        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"{prefix}: game.{key} must be a non-empty str.")

    layout = game.get('layout')
    if not isinstance(layout, dict): raise ValueError(f"{prefix}: game.layout must be a dictionary.")
    if not _is_positive_int(layout.get('rows')): raise ValueError(f"{prefix}: game.layout.rows must be a positive integer.")
    if not _is_positive_int(layout.get('columns')): raise ValueError(f"{prefix}: game.layout.columns must be a positive integer.")

    if not _is_positive_int(game.get('min_symbols_to_match')):
        raise ValueError(f"{prefix}: game.min_symbols_to_match must be a positive integer.")
    scatter_probability = game.get('scatter_probability')
    if not _is_number(scatter_probability) or not (0 <= scatter_probability < 1):
        raise ValueError(f"{prefix}: game.scatter_probability must be a number in [0, 1).")
    if game.get('max_cascade_steps') is not None and not _is_positive_int(game.get('max_cascade_steps')):
        raise ValueError(f"{prefix}: game.max_cascade_steps must be a positive integer if present.")

    bet_levels = game.get('bet_levels')
    if not isinstance(bet_levels, list) or not bet_levels:
        raise ValueError(f"{prefix}: game.bet_levels must be a non-empty list.")
    parsed_levels = [_to_money(level) for level in bet_levels]
    if any(level is None or level <= 0 for level in parsed_levels):
        raise ValueError(f"{prefix}: game.bet_levels must contain only positive amounts.")
    if any(b <= a for a, b in zip(parsed_levels, parsed_levels[1:])):
        raise ValueError(f"{prefix}: game.bet_levels must be strictly ascending.")
    default_bet = _to_money(game.get('default_bet'))
    if default_bet is None or default_bet not in parsed_levels:
        raise ValueError(f"{prefix}: game.default_bet must be one of game.bet_levels.")

    symbols_data = game.get('symbols')
    if not isinstance(symbols_data, list) or not symbols_data: raise ValueError(f"{prefix}: game.symbols must be a non-empty list.")
    collected_symbol_ids = set()
    scatter_ids = []
    for i, sym in enumerate(symbols_data):
        if not isinstance(sym, dict): raise ValueError(f"{prefix}: game.symbols[{i}] must be a dictionary.")
        sym_id = sym.get('id')
        if not isinstance(sym_id, str) or not sym_id.strip(): raise ValueError(f"{prefix}: game.symbols[{i}].id must be a non-empty str.")
        if sym_id in collected_symbol_ids: raise ValueError(f"{prefix}: game.symbols[{i}].id '{sym_id}' is duplicated.")
        collected_symbol_ids.add(sym_id)
        if sym.get('type') not in SymbolKind.CATEGORIES:
            raise ValueError(f"{prefix}: game.symbols[{i}].type must be one of {', '.join(SymbolKind.CATEGORIES)}.")
        payout = sym.get('payout', 0)
        if not _is_number(payout) or payout < 0: raise ValueError(f"{prefix}: game.symbols[{i}].payout must be a non-negative number.")
        weight = sym.get('weight', 0)
        if not _is_number(weight) or weight < 0: raise ValueError(f"{prefix}: game.symbols[{i}].weight must be a non-negative number.")
        if sym['type'] == SymbolKind.SCATTER:
            scatter_ids.append(sym_id)
        elif weight <= 0:
            raise ValueError(f"{prefix}: game.symbols[{i}].weight must be positive for non-scatter symbols.")

    if len(scatter_ids) != 1:
        raise ValueError(f"{prefix}: game.symbols must define exactly one scatter symbol.")
    if game.get('scatter_symbol_id') != scatter_ids[0]:
        raise ValueError(f"{prefix}: game.scatter_symbol_id {game.get('scatter_symbol_id')} is invalid or not the scatter symbol.")

    multipliers = game.get('random_multipliers')
    if not isinstance(multipliers, list) or not multipliers or not all(_is_positive_int(m) for m in multipliers):
        raise ValueError(f"{prefix}: game.random_multipliers must be a non-empty list of positive integers.")

    bonus_features = game.get('bonus_features')
    if not isinstance(bonus_features, dict): raise ValueError(f"{prefix}: game.bonus_features must be a dictionary.")
    free_spins = bonus_features.get('free_spins')
    if not isinstance(free_spins, dict): raise ValueError(f"{prefix}: game.bonus_features.free_spins must be a dictionary.")
    for key in ('trigger_count', 'retrigger_count'):
        if not _is_positive_int(free_spins.get(key)):
            raise ValueError(f"{prefix}: game.bonus_features.free_spins.{key} must be a positive integer.")
    spins_per_scatter = free_spins.get('retrigger_spins_per_scatter')
    if not isinstance(spins_per_scatter, int) or isinstance(spins_per_scatter, bool) or spins_per_scatter < 0:
        raise ValueError(f"{prefix}: game.bonus_features.free_spins.retrigger_spins_per_scatter must be a non-negative integer.")
    awards = free_spins.get('awards')
    if not isinstance(awards, dict) or not awards:
        raise ValueError(f"{prefix}: game.bonus_features.free_spins.awards must be a non-empty dictionary.")
    for count, spins in awards.items():
        if not str(count).isdigit() or not _is_positive_int(spins):
            raise ValueError(f"{prefix}: game.bonus_features.free_spins.awards entry '{count}' must map a scatter count to a positive spin count.")
    if min(int(c) for c in awards) > free_spins['trigger_count']:
        raise ValueError(f"{prefix}: game.bonus_features.free_spins.awards has no entry for trigger_count {free_spins['trigger_count']}.")
    delay = free_spins.get('auto_continue_delay_ms', 0)
    if not isinstance(delay, int) or isinstance(delay, bool) or delay < 0:
        raise ValueError(f"{prefix}: game.bonus_features.free_spins.auto_continue_delay_ms must be a non-negative integer.")

    infinity_power = bonus_features.get('infinity_power')
    if not isinstance(infinity_power, dict): raise ValueError(f"{prefix}: game.bonus_features.infinity_power must be a dictionary.")
    required = infinity_power.get('required_symbol_ids')
    if not isinstance(required, list) or not required:
        raise ValueError(f"{prefix}: game.bonus_features.infinity_power.required_symbol_ids must be a non-empty list.")
    for s_id in required:
        if s_id not in collected_symbol_ids or s_id in scatter_ids:
            raise ValueError(f"{prefix}: game.bonus_features.infinity_power.required_symbol_ids entry '{s_id}' is not a paying symbol.")

    categories = game.get('win_categories', [])
    if not isinstance(categories, list): raise ValueError(f"{prefix}: game.win_categories must be a list.")
    previous_ratio = None
    for i, cat in enumerate(categories):
        if not isinstance(cat, dict) or not isinstance(cat.get('key'), str) or not _is_number(cat.get('min_ratio')):
            raise ValueError(f"{prefix}: game.win_categories[{i}] must have a 'key' and a numeric 'min_ratio'.")
        if previous_ratio is not None and cat['min_ratio'] <= previous_ratio:
            raise ValueError(f"{prefix}: game.win_categories must be ordered by ascending min_ratio.")
        previous_ratio = cat['min_ratio']

    autoplay = game.get('autoplay', {})
    if not isinstance(autoplay, dict): raise ValueError(f"{prefix}: game.autoplay must be a dictionary if present.")
    for key in ('default_spins', 'delay_ms'):
        value = autoplay.get(key, 0)
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            raise ValueError(f"{prefix}: game.autoplay.{key} must be a non-negative integer.")


class GameSettings:
    """
    Validated view of one slot's configuration.

    Every core component receives this object (or a piece of it) explicitly;
    nothing reads configuration from a module-level global.
    """

    def __init__(self, name, short_name, rows, columns, min_match_count, scatter_probability,
                 bet_levels, default_bet, catalog, random_multipliers, free_spins_trigger_count,
                 free_spins_awards, retrigger_count, retrigger_spins_per_scatter,
                 infinity_power_required, win_categories, max_cascade_steps=100,
                 free_spins_auto_continue_delay_ms=1000, autoplay_default_spins=10,
                 autoplay_delay_ms=1000, rtp=None, volatility=None, max_win_multiplier=None):
        self.name = name
        self.short_name = short_name
        self.rows = rows
        self.columns = columns
        self.min_match_count = min_match_count
        self.scatter_probability = scatter_probability
        self.bet_levels = tuple(Decimal(str(b)) for b in bet_levels)
        self.default_bet = Decimal(str(default_bet))
        self.catalog = catalog
        self.random_multipliers = tuple(random_multipliers)
        self.free_spins_trigger_count = free_spins_trigger_count
        self.free_spins_awards = dict(sorted((int(k), int(v)) for k, v in free_spins_awards.items()))
        self.retrigger_count = retrigger_count
        self.retrigger_spins_per_scatter = retrigger_spins_per_scatter
        self.infinity_power_required = tuple(infinity_power_required)
        self.win_categories = tuple(dict(c) for c in win_categories)
        self.max_cascade_steps = max_cascade_steps
        self.free_spins_auto_continue_delay_ms = free_spins_auto_continue_delay_ms
        self.autoplay_default_spins = autoplay_default_spins
        self.autoplay_delay_ms = autoplay_delay_ms
        self.rtp = rtp
        self.volatility = volatility
        self.max_win_multiplier = max_win_multiplier

    def to_client_dict(self):
        """Configuration safe to expose to clients. Generation weights are omitted."""
        return {
            'name': self.name,
            'short_name': self.short_name,
            'rows': self.rows,
            'columns': self.columns,
            'min_symbols_to_match': self.min_match_count,
            'bet_levels': [str(b) for b in self.bet_levels],
            'default_bet': str(self.default_bet),
            'symbols': [
                {'id': k.id, 'name': k.name, 'type': k.category, 'payout': str(k.payout)}
                for k in self.catalog
            ],
            'scatter_symbol_id': self.catalog.scatter.id,
            'random_multipliers': list(self.random_multipliers),
            'free_spins': {
                'trigger_count': self.free_spins_trigger_count,
                'awards': {str(k): v for k, v in self.free_spins_awards.items()},
                'retrigger_count': self.retrigger_count,
                'retrigger_spins_per_scatter': self.retrigger_spins_per_scatter,
            },
            'infinity_power_required': list(self.infinity_power_required),
            'win_categories': [dict(c) for c in self.win_categories],
            'max_win_multiplier': self.max_win_multiplier,
        }


def build_game_settings(config):
    """
    Turn a validated gameConfig document into GameSettings.

    Args:
        config (dict): Output of load_game_config.

    Returns:
        GameSettings
    """
    game = config['game']
    bonus = game['bonus_features']
    free_spins = bonus['free_spins']
    autoplay = game.get('autoplay', {})
    catalog = SymbolCatalog.from_config(game['symbols'], game['scatter_symbol_id'])

    return GameSettings(
        name=game['name'],
        short_name=game['short_name'],
        rows=game['layout']['rows'],
        columns=game['layout']['columns'],
        min_match_count=game['min_symbols_to_match'],
        scatter_probability=game['scatter_probability'],
        bet_levels=game['bet_levels'],
        default_bet=game['default_bet'],
        catalog=catalog,
        random_multipliers=game['random_multipliers'],
        free_spins_trigger_count=free_spins['trigger_count'],
        free_spins_awards=free_spins['awards'],
        retrigger_count=free_spins['retrigger_count'],
        retrigger_spins_per_scatter=free_spins['retrigger_spins_per_scatter'],
        infinity_power_required=bonus['infinity_power']['required_symbol_ids'],
        win_categories=game.get('win_categories', []),
        max_cascade_steps=game.get('max_cascade_steps', 100),
        free_spins_auto_continue_delay_ms=free_spins.get('auto_continue_delay_ms', 1000),
        autoplay_default_spins=autoplay.get('default_spins', 10),
        autoplay_delay_ms=autoplay.get('delay_ms', 1000),
        rtp=game.get('rtp'),
        volatility=game.get('volatility'),
        max_win_multiplier=game.get('max_win_multiplier'),
    )


def load_game_settings(slot_short_name, base_dir=None):
    return build_game_settings(load_game_config(slot_short_name, base_dir))
