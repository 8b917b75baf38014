# __init__.py
"""
Application factory for the back-office workflow service.
This module creates and configures the Flask application using the application factory pattern.
"""

import os
import logging
from datetime import datetime
from logging.handlers import RotatingFileHandler

from flask import Flask, jsonify
from dotenv import load_dotenv
from werkzeug.exceptions import HTTPException

from backoffice.config import config_by_name
from backoffice.errors import WorkflowError
from backoffice.extensions import init_extensions, db, cache_service, post_commit


def setup_logging(app):
    """
    Configure structured logging for the application.

    Args:
        app: Flask application instance
    """
    log_format = logging.Formatter(
        '%(asctime)s %(levelname)s %(name)s %(threadName)s : %(message)s'
    )
    level = logging.DEBUG if app.debug else logging.INFO

    handlers = []

    # File handler with rotation (not under test)
    if not app.testing:
        log_dir = app.config.get('LOG_FOLDER') or os.path.join(app.root_path, 'logs')
        os.makedirs(log_dir, exist_ok=True)

        file_handler = RotatingFileHandler(
            os.path.join(log_dir, 'app.log'),
            maxBytes=1024 * 1024 * 10,  # 10MB
            backupCount=5
        )
        file_handler.setFormatter(log_format)
        file_handler.setLevel(logging.INFO)
        handlers.append(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(log_format)
    console_handler.setLevel(level)
    handlers.append(console_handler)

    app.logger.setLevel(level)
    for handler in handlers:
        app.logger.addHandler(handler)

    # Service loggers are named, not children of app.logger
    for name in ('registration_service', 'payment_service', 'invoice_service', 'attendance_service',
                 'enrollment_service', 'audit_service', 'idempotency', 'cache_service', 'post_commit',
                 'transactions'):
        service_logger = logging.getLogger(name)
        service_logger.setLevel(level)
        if not service_logger.handlers:
            for handler in handlers:
                service_logger.addHandler(handler)

    # Forcefully suppress SQLAlchemy logs
    sa_logger = logging.getLogger('sqlalchemy.engine')
    sa_logger.setLevel(logging.WARNING)
    sa_logger.propagate = False


def register_blueprints(app):
    """
    Register all application blueprints.

    Args:
        app: Flask application instance
    """
    # Import blueprints here to avoid circular imports
    from .controllers.registrations import registrations_bp
    from .controllers.payments import payments_bp
    from .controllers.enrollments import enrollments_bp
    from .controllers.attendance import attendance_bp

    app.register_blueprint(registrations_bp, url_prefix='/registrations')
    app.register_blueprint(payments_bp, url_prefix='/payments')
    app.register_blueprint(enrollments_bp, url_prefix='/enrollments')
    app.register_blueprint(attendance_bp, url_prefix='/attendance')

    app.logger.info("All blueprints registered successfully")


def register_error_handlers(app):
    """
    Register global error handlers.

    Args:
        app: Flask application instance
    """

    @app.errorhandler(WorkflowError)
    def handle_workflow_error(e):
        app.logger.info(f"{e.error_code}: {e.message}")
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        return jsonify({
            'success': False,
            'message': e.description,
            'error_code': e.name.lower().replace(' ', '_')
        }), e.code

    @app.errorhandler(Exception)
    def handle_exception(e):
        app.logger.error(f"Unhandled exception: {str(e)}", exc_info=True)
        return jsonify({
            'success': False,
            'message': str(e) if app.debug else 'Internal server error',
            'error_code': 'internal_error'
        }), 500


def register_shell_context(app):
    """
    Register shell context for flask shell command.

    Args:
        app: Flask application instance
    """

    @app.shell_context_processor
    def make_shell_context():
        from backoffice.models import (
            User, Course, Batch, Enrollment, Registration, Payment, Invoice, Attendance, AuditLog
        )
        return {
            'db': db,
            'User': User,
            'Course': Course,
            'Batch': Batch,
            'Enrollment': Enrollment,
            'Registration': Registration,
            'Payment': Payment,
            'Invoice': Invoice,
            'Attendance': Attendance,
            'AuditLog': AuditLog,
            'cache_service': cache_service,
            'post_commit': post_commit
        }


def register_health_checks(app):
    """
    Register health check endpoints.

    Args:
        app: Flask application instance
    """

    @app.route('/health')
    def health_check():
        """Basic health check endpoint."""
        return jsonify({
            'status': 'ok',
            'timestamp': datetime.now().isoformat(),
            'version': app.config.get('VERSION', '1.0.0'),
            'cache': 'enabled' if cache_service.enabled else 'disabled',
            'post_commit_queue': post_commit.tasks.size()
        })

    @app.route('/health/database')
    def database_health_check():
        """Database health check endpoint."""
        from backoffice.extensions import check_database_health, get_connection_stats

        healthy, message = check_database_health()
        stats = get_connection_stats()

        return jsonify({
            'status': 'healthy' if healthy else 'unhealthy',
            'message': message,
            'stats': stats,
            'timestamp': datetime.now().isoformat()
        }), 200 if healthy else 503


def create_app(config_name=None):
    """
    Application factory function.

    Args:
        config_name (str): Configuration name ('development', 'production', 'testing')

    Returns:
        Flask: Configured Flask application instance
    """
    # Load environment variables
    load_dotenv()

    app = Flask(__name__)

    # Load configuration
    config_name = config_name or os.environ.get('FLASK_ENV', 'development')
    config_class = config_by_name[config_name]
    if hasattr(config_class, 'validate'):
        config_class.validate()
    app.config.from_object(config_class)

    setup_logging(app)
    app.logger.info(f"Starting application with config: {config_name}")

    # Initialize extensions
    init_extensions(app)

    with app.app_context():
        from backoffice.extensions import start_database_health_monitor
        start_database_health_monitor(app, interval=app.config.get('DB_HEALTH_CHECK_INTERVAL', 300))

    # Register components
    register_blueprints(app)
    register_error_handlers(app)
    register_shell_context(app)
    register_health_checks(app)

    # Register CLI commands
    from .cli import register_cli_commands
    register_cli_commands(app)

    app.logger.info("Application factory completed successfully")

    return app
