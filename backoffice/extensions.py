# extensions.py
"""
Flask extensions initialization.
This file initializes all Flask extensions to avoid circular imports.
Extensions are initialized here and then bound to the app in the application factory.
"""

from flask import current_app
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager

from backoffice.utils.cache import CacheService
from backoffice.utils.post_commit import PostCommitQueue
from sqlalchemy import event, text
import time
import logging
import threading

# Initialize extensions without app binding
db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
cache_service = CacheService()
post_commit = PostCommitQueue()

# Connection monitoring
connection_stats = {
    'total_checks': 0,
    'failed_checks': 0,
    'last_check': 0,
    'healthy': True
}
connection_lock = threading.Lock()

logger = logging.getLogger(__name__)


def enable_sqlite_immediate_transactions(engine):
    """
    Make every SQLite transaction take the write lock up front.

    SQLite ignores SELECT ... FOR UPDATE, so check-then-act sequences are only
    atomic if concurrent writers are serialized at BEGIN.

    Args:
        engine: SQLAlchemy engine instance
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        # Let SQLAlchemy emit BEGIN itself
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(connection):
        connection.exec_driver_sql("BEGIN IMMEDIATE")


def get_connection_stats():
    """
    Get current database connection statistics.

    Returns:
        dict: Connection statistics
    """
    with connection_lock:
        return connection_stats.copy()


def check_database_health():
    """
    Check if the database connection is healthy.
    This function requires an active Flask application context.

    Returns:
        tuple: (bool, str) indicating health status and message
    """
    try:
        if not current_app:
            return False, "No application context available"

        # Use a separate connection to avoid transaction issues
        connection = db.engine.connect()
        try:
            with connection.begin():
                connection.execute(text("SELECT 1")).fetchone()

            with connection_lock:
                connection_stats['total_checks'] += 1
                connection_stats['healthy'] = True
                connection_stats['last_check'] = time.time()

            return True, "Database connection is healthy"
        finally:
            connection.close()

    except Exception as e:
        logger.error(f"Database health check failed: {e}")

        with connection_lock:
            connection_stats['failed_checks'] += 1
            connection_stats['healthy'] = False
            connection_stats['last_check'] = time.time()

        return False, f"Database connection failed: {str(e)}"


def init_extensions(app):
    """
    Initialize all extensions with proper order and configuration.

    Args:
        app: Flask application instance
    """
    # Step 1: Initialize database first (required by other extensions)
    db.init_app(app)
    migrate.init_app(app, db)

    # Step 2: SQLite needs explicit write locking for the workflow transactions
    with app.app_context():
        if app.config['SQLALCHEMY_DATABASE_URI'].startswith('sqlite'):
            enable_sqlite_immediate_transactions(db.engine)
            app.logger.info("SQLite engine configured with BEGIN IMMEDIATE transactions")

    # Step 3: Flask-Login resolves the acting user for the HTTP layer
    login_manager.init_app(app)
    login_manager.session_protection = 'basic'

    @login_manager.user_loader
    def load_user(user_id):
        # Import here to avoid circular imports
        from backoffice.models import User
        return db.session.get(User, user_id)

    @login_manager.unauthorized_handler
    def unauthorized():
        from flask import jsonify
        return jsonify({'success': False, 'message': 'Authentication required', 'error_code': 'unauthorized'}), 401

    # Step 4: Cache client (fails open when REDIS_URL is unset or unreachable)
    cache_service.init_app(app)

    # Step 5: Post-commit worker for invoice generation
    post_commit.init_app(app)

    app.logger.info("Extensions initialized successfully in correct order")


def start_database_health_monitor(app, interval=300):
    """
    Start a background thread to monitor database health.

    Args:
        app: Flask application instance
        interval (int): Health check interval in seconds
    """

    def monitor():
        while True:
            try:
                with app.app_context():
                    healthy, message = check_database_health()
                    if not healthy:
                        logger.warning(f"Database health monitor: {message}")
                time.sleep(interval)
            except Exception as e:
                logger.error(f"Database health monitor error: {e}")
                time.sleep(interval)

    if app.config.get('ENABLE_DB_HEALTH_MONITOR', False):
        monitor_thread = threading.Thread(target=monitor, daemon=True, name="DbHealthMonitor")
        monitor_thread.start()
        logger.info("Started database health monitor thread")
