"""
Configuration validation and startup checks.

Fail-fast validation of the environment the backend is started with. Values
that shape real-money behaviour (starting balance, game selection, database)
are checked before the application object is created so a misconfigured
deployment never serves a spin.
"""

import os
import sys
import warnings
from decimal import Decimal, InvalidOperation
from typing import List, Optional


class ConfigValidationError(Exception):
    """Raised when critical configuration is missing or invalid."""
    pass


class ConfigValidator:
    """Validates application configuration and enforces production settings."""

    SUPPORTED_DB_PREFIXES = ('postgresql://', 'postgresql+psycopg2://', 'sqlite://')
    DEFAULT_GAME = 'infinity_storm'
    DEFAULT_STARTING_BALANCE = '1000.00'

    def __init__(self, is_production: bool = None):
        """
        Initialize the configuration validator.

        Args:
            is_production: If None, auto-detect from FLASK_ENV
        """
        if is_production is None:
            is_production = os.getenv('FLASK_ENV', '').lower() == 'production'

        self.is_production = is_production
        self.is_testing = os.getenv('TESTING', 'False').lower() in ('true', '1', 't')
        self.errors: List[str] = []
        self.warnings: List[str] = []

    def validate_required_env_var(self, var_name: str, description: str = None) -> Optional[str]:
        """
        Validate that a required environment variable is set.

        Args:
            var_name: Name of the environment variable
            description: Human-readable description for error messages

        Returns:
            The environment variable value if set, None otherwise
        """
        value = os.getenv(var_name)
        if not value:
            desc = description or var_name
            if self.is_production:
                self.errors.append(f"CRITICAL: {desc} ({var_name}) must be set in production environment")
            else:
                self.warnings.append(f"WARNING: {desc} ({var_name}) not set - using development fallback")
        return value

    def validate_database_config(self) -> str:
        """Validate database configuration."""
        database_url = self.validate_required_env_var('DATABASE_URL', 'Database URL')

        if database_url:
            if not database_url.startswith(self.SUPPORTED_DB_PREFIXES):
                self.errors.append("CRITICAL: DATABASE_URL must use a supported database driver")
            return database_url

        if self.is_testing:
            return 'sqlite:///:memory:'
        return 'sqlite:///./cascade_be_dev.db'

    def validate_game_config(self) -> str:
        """Validate which slot configuration the server plays."""
        short_name = os.getenv('GAME_SHORT_NAME', self.DEFAULT_GAME).strip()
        if not short_name:
            self.errors.append("CRITICAL: GAME_SHORT_NAME must not be empty")
            return self.DEFAULT_GAME
        if not short_name.replace('_', '').isalnum():
            self.errors.append(f"CRITICAL: GAME_SHORT_NAME '{short_name}' may only contain letters, digits and underscores")
        return short_name

    def validate_starting_balance(self) -> Decimal:
        """Validate the balance granted to newly created players."""
        raw_value = os.getenv('STARTING_BALANCE', self.DEFAULT_STARTING_BALANCE)
        try:
            balance = Decimal(raw_value)
        except InvalidOperation:
            self.errors.append(f"CRITICAL: STARTING_BALANCE '{raw_value}' is not a valid amount")
            return Decimal(self.DEFAULT_STARTING_BALANCE)

        if balance < 0:
            self.errors.append("CRITICAL: STARTING_BALANCE cannot be negative")
        if balance != balance.quantize(Decimal('0.01')):
            self.warnings.append(f"WARNING: STARTING_BALANCE {balance} has sub-cent precision and will be rounded")
        return balance.quantize(Decimal('0.01'))

    def validate_logging_config(self) -> str:
        level = os.getenv('LOG_LEVEL', 'INFO').upper()
        if level not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            self.warnings.append(f"WARNING: LOG_LEVEL '{level}' is not recognised - using INFO")
            return 'INFO'
        return level

    def validate_all(self) -> dict:
        """
        Validate all configuration settings.

        Returns:
            Dictionary containing validated configuration values

        Raises:
            ConfigValidationError: If critical configuration is missing in production
        """
        config = {}

        try:
            config['SQLALCHEMY_DATABASE_URI'] = self.validate_database_config()
            config['GAME_SHORT_NAME'] = self.validate_game_config()
            config['STARTING_BALANCE'] = self.validate_starting_balance()
            config['LOG_LEVEL'] = self.validate_logging_config()
            config['DEBUG'] = os.getenv('FLASK_DEBUG', 'False').lower() in ('true', '1', 't')

            if self.is_production and config['DEBUG']:
                self.errors.append("CRITICAL: DEBUG mode must be disabled in production (set FLASK_DEBUG=False)")

            if self.errors:
                error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {error}" for error in self.errors)
                if self.warnings:
                    error_msg += "\n\nWarnings:\n" + "\n".join(f"  - {warning}" for warning in self.warnings)
                raise ConfigValidationError(error_msg)

            for warning in self.warnings:
                warnings.warn(warning, UserWarning)

            return config

        except Exception as e:
            if isinstance(e, ConfigValidationError):
                raise
            raise ConfigValidationError(f"Configuration validation error: {str(e)}") from e


def validate_production_config() -> dict:
    """
    Validate configuration with fail-fast behavior.

    Returns:
        Dictionary of validated configuration values

    Raises:
        SystemExit: If validation fails during startup
    """
    try:
        validator = ConfigValidator()
        return validator.validate_all()
    except ConfigValidationError as e:
        print("\nCONFIGURATION VALIDATION FAILED\n", file=sys.stderr)
        print(str(e), file=sys.stderr)
        print("\nSet the required environment variables (see .env.example) and restart.\n", file=sys.stderr)
        sys.exit(1)
