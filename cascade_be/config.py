"""
Application configuration with fail-fast validation.

Environment values are validated once at import. Game rules are not kept
here: they live in the slot's gameConfig.json and are loaded into a
GameSettings object by utils.game_config.
"""
import os
from decimal import Decimal
from dotenv import load_dotenv

from cascade_be.config_validator import validate_production_config

load_dotenv()


class Config:
    """Production-ready configuration with fail-fast validation."""

    _validated_config = validate_production_config()

    # Database Configuration
    SQLALCHEMY_DATABASE_URI = _validated_config['SQLALCHEMY_DATABASE_URI']
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    DEBUG = _validated_config['DEBUG']
    LOG_LEVEL = _validated_config['LOG_LEVEL']

    # Game selection and economy
    GAME_SHORT_NAME = _validated_config['GAME_SHORT_NAME']
    STARTING_BALANCE = _validated_config['STARTING_BALANCE']

    # Alternative directory holding <short_name>/gameConfig.json files
    SLOT_CONFIG_DIR = os.getenv('SLOT_CONFIG_DIR')


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    GAME_SHORT_NAME = 'infinity_storm'
    STARTING_BALANCE = Decimal('1000.00')
    SLOT_CONFIG_DIR = None
    LOG_LEVEL = 'DEBUG'
    # Deterministic spins for API tests
    RANDOM_SEED = 1234
