import os
from datetime import timedelta
from dotenv import load_dotenv

load_dotenv()


class Config:
    """Base configuration class with all settings as static attributes."""

    # Core configuration
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'your-secret-key-here'
    DEBUG = os.environ.get('FLASK_DEBUG', 'false').lower() == 'true'
    VERSION = '1.0.0'

    # Session settings
    PERMANENT_SESSION_LIFETIME = timedelta(hours=2)
    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'

    # MySQL connection timeouts
    MYSQL_CONNECT_TIMEOUT = 30
    MYSQL_READ_TIMEOUT = 30
    MYSQL_WRITE_TIMEOUT = 30

    # Database configuration
    base_db_uri = os.environ.get('DATABASE_URL')

    # Fallback to SQLite if no DATABASE_URL is provided
    if not base_db_uri:
        base_db_uri = 'sqlite:///backoffice.db'
        print("WARNING: DATABASE_URL not set, falling back to SQLite")

    SQLALCHEMY_DATABASE_URI = base_db_uri

    # Disable track modifications for performance
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Pooling and driver timeouts only apply to server databases
    if base_db_uri.startswith('mysql'):
        SQLALCHEMY_ENGINE_OPTIONS = {
            "pool_recycle": 3600,  # Recycle connections after 1 hour
            "pool_pre_ping": True,
            "pool_size": 10,
            "max_overflow": 20,
            "isolation_level": "REPEATABLE READ",
            "connect_args": {
                "connect_timeout": MYSQL_CONNECT_TIMEOUT,
                "read_timeout": MYSQL_READ_TIMEOUT,
                "write_timeout": MYSQL_WRITE_TIMEOUT,
            }
        }
    elif base_db_uri.startswith('postgresql'):
        SQLALCHEMY_ENGINE_OPTIONS = {
            "pool_recycle": 3600,
            "pool_pre_ping": True,
            "pool_size": 10,
            "max_overflow": 20,
        }
    else:
        SQLALCHEMY_ENGINE_OPTIONS = {
            "connect_args": {"timeout": 30},
        }

    # Transaction retry settings (serialization failures, deadlocks, locked sqlite)
    DB_TRANSACTION_RETRIES = 3
    DB_TRANSACTION_RETRY_DELAY = 0.05  # seconds, doubled on each attempt

    # Health monitoring
    ENABLE_DB_HEALTH_MONITOR = False
    DB_HEALTH_CHECK_INTERVAL = 300  # 5 minutes

    # Redis cache (unset disables caching; every cache call fails open)
    REDIS_URL = os.environ.get('REDIS_URL')
    REDIS_SOCKET_TIMEOUT = float(os.environ.get('REDIS_SOCKET_TIMEOUT', 0.5))

    # Idempotency keys
    IDEMPOTENCY_TTL = 3600  # 1 hour
    IDEMPOTENCY_PREFIX = 'idempotency'

    # Directory configuration
    BASE_DIR = os.path.dirname(os.path.abspath(__file__))
    STORAGE_FOLDER = os.environ.get('STORAGE_FOLDER', os.path.join(BASE_DIR, 'storage'))
    INVOICE_FOLDER = os.path.join(STORAGE_FOLDER, 'invoices')

    # Invoice settings
    INVOICE_INSTITUTION_NAME = os.environ.get('INVOICE_INSTITUTION_NAME', 'Institutional Management System')
    INVOICE_CONTACT_EMAIL = os.environ.get('INVOICE_CONTACT_EMAIL', 'info@institution.edu')
    INVOICE_CURRENCY_SYMBOL = os.environ.get('INVOICE_CURRENCY_SYMBOL', 'Rs.')
    INVOICE_NUMBER_RETRIES = 3

    # Post-commit work (invoice generation)
    POST_COMMIT_ASYNC = os.environ.get('POST_COMMIT_ASYNC', 'true').lower() == 'true'
    POST_COMMIT_MAX_ATTEMPTS = 3
    POST_COMMIT_STATUS_LIMIT = 1000  # task statuses kept for lookup

    # Pagination
    DEFAULT_PAGE_SIZE = 20
    MAX_PAGE_SIZE = 100


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    SQLALCHEMY_ECHO = os.environ.get('SQL_DEBUG', 'false').lower() == 'true'
    SESSION_COOKIE_SECURE = False


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    ENABLE_DB_HEALTH_MONITOR = True

    # Ensure secret key is set in production
    SECRET_KEY = os.environ.get('SECRET_KEY')

    # Use production database
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL')

    @classmethod
    def validate(cls):
        if not cls.SECRET_KEY:
            raise ValueError("SECRET_KEY environment variable must be set in production")
        if not cls.SQLALCHEMY_DATABASE_URI:
            raise ValueError("DATABASE_URL environment variable must be set in production")


class TestingConfig(Config):
    """Testing configuration."""
    TESTING = True
    SECRET_KEY = 'testing-secret-key'
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    SESSION_COOKIE_SECURE = False

    REDIS_URL = None
    POST_COMMIT_ASYNC = False
    DB_TRANSACTION_RETRY_DELAY = 0.01


# Configuration dictionary
config_by_name = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig
}
