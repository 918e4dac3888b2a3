import os

import redis
from flask import Flask, jsonify
from sqlalchemy.exc import SQLAlchemyError

from workflow.errors import WorkflowError
from .assignment_coordinator import AssignmentCoordinator
from .authorization import AuthorizationGuard, login_manager
from .category_registry import CategoryRegistry
from .config import config
from .event_publisher import EventPublisher, create_redis_client
from .ledger import Ledger
from .models import db
from .registration_manager import RegistrationManager
from .team_registry import TeamRegistry
from .tournament_registry import TournamentRegistry


def create_app(config_name=None, redis_client: redis.Redis = None) -> Flask:
    """Application factory for the tournament service.

    ``config_name`` is a key of ``config`` or a config class.
    """
    if config_name is None:
        config_name = os.getenv('FLASK_ENV', 'development')

    app = Flask(__name__)
    app.config.from_object(config[config_name] if isinstance(config_name, str) else config_name)

    # Initialize extensions
    db.init_app(app)
    login_manager.init_app(app)

    if redis_client is None and app.config['PUBLISH_EVENTS']:
        redis_client = create_redis_client(app.config['REDIS_URL'])
    app.redis = redis_client

    # Initialize services
    publisher = EventPublisher(redis_client)
    guard = AuthorizationGuard()
    ledger = Ledger(publisher)

    app.registry = TournamentRegistry(guard, publisher)
    app.categories = CategoryRegistry(guard, publisher)
    app.teams = TeamRegistry(guard, ledger)
    app.registrations = RegistrationManager(guard, publisher)
    app.coordinator = AssignmentCoordinator(guard, ledger, publisher)

    # Create tables
    with app.app_context():
        db.create_all()

    register_error_handlers(app)
    register_health_route(app)

    from .routes import tournaments, teams, registrations
    app.register_blueprint(tournaments.bp)
    app.register_blueprint(teams.bp)
    app.register_blueprint(registrations.bp)

    return app


def register_error_handlers(app: Flask):

    @app.errorhandler(WorkflowError)
    def handle_workflow_error(error: WorkflowError):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def handle_not_found(error):
        return jsonify({'error': 'NOT_FOUND', 'message': 'Resource not found'}), 404


def register_health_route(app: Flask):

    @app.route('/health')
    def health_check():
        """Health check endpoint."""
        redis_ok = None
        if app.redis is not None:
            try:
                app.redis.ping()
                redis_ok = True
            except redis.exceptions.RedisError:
                redis_ok = False

        try:
            db.session.execute(db.text('SELECT 1'))
            db_ok = True
        except SQLAlchemyError:
            db_ok = False

        healthy = db_ok and redis_ok is not False
        return jsonify({
            'status': 'healthy' if healthy else 'unhealthy',
            'redis': 'disabled' if redis_ok is None else ('connected' if redis_ok else 'disconnected'),
            'database': 'connected' if db_ok else 'disconnected'
        }), 200 if healthy else 503
