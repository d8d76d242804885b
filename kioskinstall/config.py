import os
from pathlib import Path

class Config:
    """Base configuration - shared across all environments"""

    # Security
    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-secret-key')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SECURITY_PASSWORD_SALT = os.environ.get('SECURITY_PASSWORD_SALT', 'dev-salt')

    # Flask-Security settings
    SECURITY_REGISTERABLE = False
    SECURITY_PASSWORD_HASH = 'pbkdf2_sha512'
    SECURITY_TOKEN_AUTHENTICATION_HEADER = 'Authentication-Token'
    SECURITY_TOKEN_AUTHENTICATION_KEY = 'auth_token'
    SECURITY_TOKEN_MAX_AGE = int(os.environ.get('SECURITY_TOKEN_MAX_AGE', 12 * 60 * 60))
    SECURITY_TRACKABLE = False
    SECURITY_API_ENABLED = True
    SECURITY_URL_PREFIX = "/api/auth"
    WTF_CSRF_ENABLED = False
    SECURITY_CSRF_PROTECT_MECHANISMS = []
    SECURITY_CSRF_IGNORE_UNAUTH_ENDPOINTS = True
    SESSION_COOKIE_HTTPONLY = True

    # JSON API configurations
    SECURITY_RENDER_AS_JSON = True
    SECURITY_JSON = True
    SECURITY_JSON_ERRORS = True
    SECURITY_JSON_RESPONSE = True

    # Rate limits
    RATELIMIT_ENABLED = True
    RATELIMIT_DEFAULT = "1000 per day;500 per hour"
    LOGIN_RATE_LIMIT = os.environ.get('LOGIN_RATE_LIMIT', '30 per minute')
    AUDIT_RATE_LIMIT = os.environ.get('AUDIT_RATE_LIMIT', '20 per hour')

    # Role-picker login; real identity verification is not wired in
    MOCK_LOGIN_ENABLED = os.environ.get('MOCK_LOGIN_ENABLED', 'true').lower() == 'true'

    # Capture uploads
    MAX_CONTENT_LENGTH = 10 * 1024 * 1024  # 10MB
    ALLOWED_IMAGE_EXTENSIONS = {'jpg', 'jpeg', 'png', 'webp'}
    WATERMARK_FONT_PATH = os.environ.get('WATERMARK_FONT_PATH')

    # Display timezone for capture timestamps and report dates
    DISPLAY_TIMEZONE = os.environ.get('DISPLAY_TIMEZONE', 'America/New_York')

    # Upper bound on the serialized project list, in bytes
    PROJECT_STORE_MAX_BYTES = int(os.environ.get('PROJECT_STORE_MAX_BYTES', 50 * 1024 * 1024))

    # AI audit
    OPENAI_API_KEY = os.environ.get('OPENAI_API_KEY')
    AUDIT_MODEL = os.environ.get('AUDIT_MODEL', 'gpt-4o-mini')
    AUDIT_TIMEOUT_SECONDS = float(os.environ.get('AUDIT_TIMEOUT_SECONDS', 60))

    # Create tables and seed the role accounts on startup
    AUTO_INIT_DB = os.environ.get('AUTO_INIT_DB', 'true').lower() == 'true'

    BASE_DIR = os.path.dirname(os.path.abspath(__file__))

    # Paths
    STORE_SEED_FILE = os.environ.get('STORE_SEED_FILE')
    REPORT_OUTPUT_DIR = os.getenv(
        "REPORT_OUTPUT_DIR",
        str(Path(__file__).resolve().parents[1] / "kiosk-storage" / "reports"))
    LOGS_DIR = os.getenv("LOGS_DIR", os.path.join(BASE_DIR, 'logs'))


class DevConfig(Config):
    """Development configuration"""
    DEBUG = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    SESSION_COOKIE_SECURE = False
    FLASK_HOST = '0.0.0.0'
    FLASK_PORT = 5000
    FRONTEND_URL = 'http://localhost:3000'

    STORAGE_PATH = str(Path(__file__).resolve().parents[1] / "kiosk-storage" / "database")
    DB_PATH = os.path.join(STORAGE_PATH, 'kioskinstall.db')
    SQLALCHEMY_DATABASE_URI = os.environ.get('SQLALCHEMY_DATABASE_URI', f"sqlite:///{DB_PATH}")


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    SESSION_COOKIE_SAMESITE = 'None'
    SESSION_COOKIE_SECURE = True
    FLASK_HOST = '::'
    FLASK_PORT = 5000
    FRONTEND_URL = os.environ.get('FRONTEND_URL', 'https://kioskpro.com')

    STORAGE_PATH = str(Path(__file__).resolve().parents[1] / "kiosk-storage" / "database")
    DB_PATH = os.path.join(STORAGE_PATH, 'kioskinstall.db')
    SQLALCHEMY_DATABASE_URI = os.environ.get('SQLALCHEMY_DATABASE_URI', f"sqlite:///{DB_PATH}")


class TestConfig(Config):
    """Test configuration - in-memory database, no rate limits"""
    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    RATELIMIT_ENABLED = False
    OPENAI_API_KEY = None
    FRONTEND_URL = 'http://localhost:3000'
