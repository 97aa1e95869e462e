from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from flask import Flask, request, jsonify, current_app, g
import uuid
import random
import logging
from decimal import Decimal
from http import HTTPStatus

import click
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException as WerkzeugHTTPException
from pythonjsonlogger import jsonlogger
from marshmallow import ValidationError

from cascade_be.exceptions import AppException
from cascade_be.error_codes import ErrorCodes
from .models import db
from .config import Config
from .routes.slots import slots_bp
from .services.autoplay_service import AutoplayScheduler
from .services.persistence_service import PersistenceService
from .utils.game_config import load_game_settings
from .utils.slot_tester import SlotTester
from .utils.spin_handler import handle_player_spin


# Custom Logging Filter for Request ID
class RequestIdFilter(logging.Filter):
    def filter(self, record):
        try:
            record.request_id = g.get('request_id', 'N/A')
        except RuntimeError:
            # Outside an application context (CLI, timer threads)
            record.request_id = 'N/A'
        return True


def _configure_logging(app):
    level = getattr(logging, app.config.get('LOG_LEVEL', 'INFO'), logging.INFO)
    if not app.debug and not app.testing:
        handler = logging.StreamHandler()
        formatter = jsonlogger.JsonFormatter(
            '%(asctime)s %(levelname)s %(request_id)s %(name)s %(funcName)s %(lineno)d %(message)s'
        )
        handler.setFormatter(formatter)
        handler.addFilter(RequestIdFilter())
        for logger in (app.logger, logging.getLogger('cascade_be')):
            if logger.hasHandlers():
                logger.handlers.clear()
            logger.addHandler(handler)
            logger.setLevel(level)
        logging.getLogger('cascade_be').propagate = False
    else:
        # Basic logging for debug mode if not already configured
        if not app.logger.handlers:
            logging.basicConfig(level=logging.DEBUG)
        logging.getLogger('cascade_be').setLevel(level)


def _error_body(request_id, error_code, status_message, details=None, action_button=None):
    return {
        'request_id': request_id,
        'status': False,
        'error_code': error_code,
        'status_message': status_message,
        'details': details if details is not None else {},
        'action_button': action_button
    }


def _register_error_handlers(app):
    @app.errorhandler(ValidationError)
    def handle_validation_error(e):
        request_id = g.get('request_id', 'N/A')
        current_app.logger.warning(
            f"Request ID: {request_id} - Validation error: {e.messages} - Error Code: {ErrorCodes.VALIDATION_ERROR}"
        )
        return jsonify(_error_body(request_id, ErrorCodes.VALIDATION_ERROR, 'Input validation failed.',
                                   {'errors': e.messages})), HTTPStatus.UNPROCESSABLE_ENTITY

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(e):
        request_id = g.get('request_id', 'N/A')
        db.session.rollback()
        current_app.logger.error(
            f"Request ID: {request_id} - Database error. Error Code: {ErrorCodes.INTERNAL_SERVER_ERROR}",
            exc_info=True
        )
        return jsonify(_error_body(request_id, ErrorCodes.INTERNAL_SERVER_ERROR,
                                   'A database error occurred. Please try again later.')), HTTPStatus.INTERNAL_SERVER_ERROR

    @app.errorhandler(WerkzeugHTTPException)
    def handle_werkzeug_http_exception(e):
        request_id = g.get('request_id', 'N/A')
        error_code = ErrorCodes.GENERIC_ERROR
        if e.code == 404:
            error_code = ErrorCodes.NOT_FOUND
        elif e.code == 405:
            error_code = ErrorCodes.METHOD_NOT_ALLOWED
        elif e.code == 400:
            error_code = ErrorCodes.VALIDATION_ERROR
        elif e.code >= 500:
            error_code = ErrorCodes.INTERNAL_SERVER_ERROR

        current_app.logger.warning(
            f"Request ID: {request_id} - Werkzeug HTTPException: {e.code} - {e.name}: {e.description} - Error Code: {error_code}"
        )
        response = e.get_response()
        response.data = jsonify(_error_body(request_id, error_code, e.name, {'description': e.description})).data
        response.content_type = "application/json"
        return response

    @app.errorhandler(404)
    def handle_flask_not_found(e):
        request_id = g.get('request_id', 'N/A')
        current_app.logger.warning(
            f"Request ID: {request_id} - HTTP 404 Not Found: {request.url} - Error Code: {ErrorCodes.NOT_FOUND}"
        )
        return jsonify(_error_body(request_id, ErrorCodes.NOT_FOUND, 'The requested resource was not found.',
                                   {'path': request.path})), HTTPStatus.NOT_FOUND

    # --- Global Error Handler (catch-all for general exceptions) ---
    @app.errorhandler(Exception)
    def handle_global_exception(e):
        request_id = g.get('request_id', 'N/A')

        if isinstance(e, AppException):
            current_app.logger.error(
                f"Request ID: {request_id} - AppException: {e.error_code} - {e.status_message} - Details: {e.details}",
                exc_info=True if e.status_code >= 500 else False
            )
            return jsonify(_error_body(request_id, e.error_code, e.status_message, e.details,
                                       e.action_button)), e.status_code

        if isinstance(e, WerkzeugHTTPException):
            return handle_werkzeug_http_exception(e)

        current_app.logger.critical(
            f"Request ID: {request_id} - Unhandled Critical Exception. Error Code: {ErrorCodes.INTERNAL_SERVER_ERROR}",
            exc_info=True
        )
        return jsonify(_error_body(request_id, ErrorCodes.INTERNAL_SERVER_ERROR,
                                   'An unexpected internal server error occurred. Please try again later.')), HTTPStatus.INTERNAL_SERVER_ERROR


def _register_cli(app):
    @app.cli.command('init-db')
    def init_db_command():
        """Create all database tables."""
        db.create_all()
        click.echo("Database tables created.")

    @app.cli.command('simulate-rtp')
    @click.option('-n', '--num-spins', type=int, default=10000, help='Number of spins to simulate.')
    @click.option('-b', '--bet', type=str, default=None, help='Bet per spin (defaults to the game default bet).')
    @click.option('-s', '--seed', type=int, default=None, help='Seed for a reproducible run.')
    def simulate_rtp_command(num_spins, bet, seed):
        """Simulates play of the configured game and prints RTP statistics."""
        settings = app.extensions['game_settings']
        tester = SlotTester(settings, num_spins, Decimal(bet) if bet else None, seed=seed)
        tester.run_simulation()
        tester.print_summary_statistics()

    @app.cli.command('autoplay')
    @click.option('-p', '--player-id', type=int, required=True, help='Player to spin for.')
    @click.option('-n', '--spins', type=int, default=None, help='Autoplay spins (defaults to the game setting).')
    def autoplay_command(player_id, spins):
        """Runs server-side autoplay for a stored player until it stops."""
        settings = app.extensions['game_settings']
        persistence = PersistenceService()
        player = persistence.get_player(player_id)
        snapshot = persistence.load_snapshot(player)
        snapshot['autoplay_remaining'] = spins or settings.autoplay_default_spins
        persistence.save_snapshot(player, snapshot)

        def spin_once():
            with app.app_context():
                outcome, _, record = handle_player_spin(player_id, settings, PersistenceService(),
                                                        random_source=app.extensions['random_source'])
                click.echo(f"Spin {record.id}: win {outcome.total_win} balance {outcome.balance_after}")
                return outcome

        scheduler = AutoplayScheduler(spin_once, settings.autoplay_delay_ms,
                                      settings.free_spins_auto_continue_delay_ms)
        scheduler.start()
        try:
            scheduler.wait()
        except KeyboardInterrupt:
            scheduler.cancel()
        if scheduler.last_error is not None:
            click.echo(f"Autoplay stopped: {scheduler.last_error}")
        click.echo(f"Autoplay finished after {scheduler.spins_run} spins.")


def create_app(config_class=Config):
    """Application factory."""
    app = Flask(__name__)
    app.config.from_object(config_class)

    _configure_logging(app)

    db.init_app(app)

    # Game rules are loaded once; a broken config fails startup
    app.extensions['game_settings'] = load_game_settings(
        app.config['GAME_SHORT_NAME'], app.config.get('SLOT_CONFIG_DIR')
    )
    seed = app.config.get('RANDOM_SEED')
    app.extensions['random_source'] = random.Random(seed) if seed is not None else None

    @app.before_request
    def assign_request_id():
        g.request_id = str(uuid.uuid4())

    @app.after_request
    def add_request_id_header(response):
        response.headers['X-Request-ID'] = g.get('request_id', 'N/A')
        response.headers['X-Content-Type-Options'] = 'nosniff'
        return response

    @app.route('/health')
    def health_check():
        settings = app.extensions['game_settings']
        return jsonify({'status': True, 'game': settings.short_name}), HTTPStatus.OK

    _register_error_handlers(app)
    app.register_blueprint(slots_bp)
    _register_cli(app)

    with app.app_context():
        db.create_all()

    return app
