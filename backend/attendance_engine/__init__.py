"""Attendance Verification Engine - Application Factory."""
import logging
import os
from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_jwt_extended import JWTManager
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

# Initialize extensions
db = SQLAlchemy()
migrate = Migrate()
jwt = JWTManager()
limiter = Limiter(key_func=get_remote_address)


def create_app(config_name: str = None) -> Flask:
    """Application factory pattern."""
    app = Flask(__name__)

    # Load configuration
    from config import get_config
    config_class = get_config(config_name)
    app.config.from_object(config_class)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    limiter.init_app(app)

    # Configure CORS
    CORS(app, origins=app.config.get('CORS_ORIGINS', ["*"]))

    # Setup logging
    setup_logging(app)

    # Setup database
    setup_database(app)

    # Wire verification services
    setup_engine(app)

    # Register blueprints
    register_blueprints(app)

    # Register error handlers
    register_error_handlers(app)

    # Add CLI commands
    register_commands(app)

    # Add health check
    @app.route('/health')
    def health_check():
        return jsonify({
            'status': 'healthy',
            'service': 'Attendance Verification Engine',
            'version': '1.0.0'
        })

    return app


def register_blueprints(app: Flask) -> None:
    """Register all application blueprints."""
    from attendance_engine.api.sessions import sessions_bp
    from attendance_engine.api.attendance import attendance_bp
    from attendance_engine.api.reports import reports_bp
    from attendance_engine.api.timetable import timetable_bp

    app.register_blueprint(sessions_bp, url_prefix='/api/sessions')
    app.register_blueprint(attendance_bp, url_prefix='/api/attendance')
    app.register_blueprint(reports_bp, url_prefix='/api/reports')
    app.register_blueprint(timetable_bp, url_prefix='/api/timetable')


def register_error_handlers(app: Flask) -> None:
    """Register error handlers."""
    from attendance_engine.errors import AttendanceError
    from attendance_engine.utils.helpers import handle_error
    from attendance_engine.utils.validators import ValidationError
    from werkzeug.exceptions import HTTPException

    @app.errorhandler(AttendanceError)
    def attendance_error(error):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(ValidationError)
    def validation_error(error):
        return handle_error(error, 400)

    @app.errorhandler(HTTPException)
    def handle_exception(e):
        return handle_error(e.description, e.code)

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        return handle_error("Internal server error", 500)

    # JWT error handlers
    @jwt.expired_token_loader
    def expired_token_callback(jwt_header, jwt_payload):
        return jsonify({
            'error': True,
            'message': 'Token has expired',
            'status_code': 401
        }), 401

    @jwt.invalid_token_loader
    def invalid_token_callback(error):
        return jsonify({
            'error': True,
            'message': 'Invalid token',
            'status_code': 401
        }), 401

    @jwt.unauthorized_loader
    def missing_token_callback(error):
        return jsonify({
            'error': True,
            'message': 'Authorization token required',
            'status_code': 401
        }), 401


def setup_logging(app: Flask) -> None:
    """Setup application logging."""
    level = getattr(logging, app.config.get('LOG_LEVEL', 'INFO'), logging.INFO)
    logging.getLogger('attendance_engine').setLevel(level)

    if not app.debug and not app.testing:
        log_file = app.config.get('LOG_FILE', 'logs/app.log')
        log_dir = os.path.dirname(log_file)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir)

        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
        ))
        file_handler.setLevel(logging.INFO)
        app.logger.addHandler(file_handler)
        logging.getLogger('attendance_engine').addHandler(file_handler)

        app.logger.setLevel(logging.INFO)
        app.logger.info('Attendance Verification Engine startup')


def setup_database(app: Flask) -> None:
    """Setup database connections."""
    with app.app_context():
        # Import all models
        from attendance_engine.models.document import Document  # noqa: F401
        db.create_all()


def setup_engine(app: Flask) -> None:
    """Build the verification engine on top of the configured store."""
    from attendance_engine.engine import AttendanceEngine
    from attendance_engine.storage.document_store import MemoryDocumentStore
    from attendance_engine.storage.sql_store import SQLDocumentStore
    from attendance_engine.utils.locks import RedisKeyedLock

    if app.config.get('STORE_BACKEND') == 'memory':
        store = MemoryDocumentStore()
    else:
        store = SQLDocumentStore()

    locks = None
    if app.config.get('REDIS_URL'):
        import redis
        locks = RedisKeyedLock(redis.Redis.from_url(app.config['REDIS_URL']))

    engine = AttendanceEngine.from_config(
        app.config,
        store,
        locks=locks,
        context_factory=app.app_context
    )
    app.extensions['attendance_engine'] = engine


def register_commands(app: Flask) -> None:
    """Register CLI commands."""
    import click

    @app.cli.command('init-db')
    @click.option('--drop', is_flag=True, help='Drop existing tables')
    def init_db(drop):
        """Initialize the database."""
        if drop:
            db.drop_all()
            click.echo('Dropped all tables.')

        db.create_all()
        click.echo('Created all tables.')

    @app.cli.command('seed-demo')
    def seed_demo():
        """Seed demo users and timetable."""
        from attendance_engine.services.seed_service import SeedService

        users = SeedService.seed_all(app.extensions['attendance_engine'])
        click.echo(f'Seeded {len(users)} users.')

    @app.cli.command('issue-token')
    @click.argument('user_id')
    def issue_token(user_id):
        """Issue a development access token for a stored user."""
        from flask_jwt_extended import create_access_token

        user = app.extensions['attendance_engine'].get_user(user_id)
        if user is None:
            raise click.ClickException(f'Unknown user: {user_id}')
        click.echo(create_access_token(identity=user.id))

    @app.cli.command('end-stale-sessions')
    def end_stale_sessions():
        """End active sessions older than the staleness window."""
        engine = app.extensions['attendance_engine']
        ended = engine.registry.end_stale_sessions(app.config['SESSION_STALENESS_MINUTES'] * 60 * 1000)
        click.echo(f'Ended {len(ended)} stale session(s).')
