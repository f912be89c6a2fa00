import os

from dotenv import load_dotenv

load_dotenv()


class Config:
    """Base configuration."""
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'a-very-secret-key'

    # Prioritize the production DATABASE_URL, with SQLite as a fallback.
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(os.path.abspath(os.path.dirname(__file__)), 'instance', 'app.db')

    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Debug mode - only enable in development environment
    DEBUG = os.environ.get('FLASK_DEBUG', 'False').lower() in ('true', '1', 'yes', 'on')

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()

    # Progress snapshot engine
    SNAPSHOT_QUERY_TIMEOUT_SECONDS = int(os.environ.get('SNAPSHOT_QUERY_TIMEOUT_SECONDS', 10))
    SNAPSHOT_RECALCULATION_INTERVAL_HOURS = int(os.environ.get('SNAPSHOT_RECALCULATION_INTERVAL_HOURS', 24))
    RISK_ALERT_COOLDOWN_HOURS = int(os.environ.get('RISK_ALERT_COOLDOWN_HOURS', 24))

    # At-risk dashboard paging
    AT_RISK_PAGE_SIZE = 20
    AT_RISK_MAX_PAGE_SIZE = 100


class ProductionConfig(Config):
    """Production configuration with enhanced security."""
    DEBUG = False  # Always False in production
    TESTING = False

    SESSION_COOKIE_SECURE = True  # Only send cookies over HTTPS
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    PERMANENT_SESSION_LIFETIME = 3600  # 1 hour session timeout


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    TESTING = False
    LOG_LEVEL = 'DEBUG'


class TestingConfig(Config):
    """Testing configuration."""
    DEBUG = True
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'  # In-memory database for tests
