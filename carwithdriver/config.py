import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()


class Config:
    """Base configuration - shared across all environments"""

    # Security
    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-secret-key')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SECURITY_PASSWORD_SALT = os.environ.get('SECURITY_PASSWORD_SALT', 'dev-salt')
    SECURITY_PASSWORD_HASH = 'pbkdf2_sha512'

    # Flask-Security settings
    SECURITY_REGISTERABLE = False
    SECURITY_TOKEN_AUTHENTICATION_HEADER = 'Authentication-Token'
    SECURITY_TOKEN_AUTHENTICATION_KEY = 'auth_token'
    SECURITY_TRACKABLE = False
    SECURITY_URL_PREFIX = "/api/auth"
    WTF_CSRF_ENABLED = False
    SECURITY_CSRF_IGNORE_UNAUTH_ENDPOINTS = True
    SESSION_COOKIE_HTTPONLY = True
    SECURITY_RENDER_AS_JSON = True
    SECURITY_JSON = True

    # Commission engine
    COMMISSION_BASE_RATE = float(os.environ.get('COMMISSION_BASE_RATE', '0.08'))
    MAX_DISCOUNT_PERCENT = 8
    CANCELLATION_FREE_DAYS = 2
    CANCELLATION_LATE_PENALTY_RATIO = 0.5
    COMMISSION_DUE_DAY = 5
    EARNINGS_HISTORY_LIMIT = 24
    DISPLAY_TIMEZONE = os.environ.get('DISPLAY_TIMEZONE', 'Asia/Colombo')

    # Where drivers transfer the monthly commission (payments happen off-platform)
    PLATFORM_BANK_DETAILS = {
        'account_name': os.environ.get('PLATFORM_BANK_ACCOUNT_NAME', 'Car With Driver Operations'),
        'account_number': os.environ.get('PLATFORM_BANK_ACCOUNT_NUMBER', '0001234567'),
        'bank_name': os.environ.get('PLATFORM_BANK_NAME', 'National Bank of Sri Lanka'),
        'branch': os.environ.get('PLATFORM_BANK_BRANCH', 'Colombo HQ'),
        'swift_code': os.environ.get('PLATFORM_BANK_SWIFT', ''),
        'reference_note': os.environ.get(
            'PLATFORM_BANK_REFERENCE',
            'Use your Car With Driver ID and the commission month as the payment reference.'
        ),
    }

    BASE_DIR = os.path.dirname(os.path.abspath(__file__))
    LOGS_DIR = os.environ.get('LOGS_DIR', os.path.join(BASE_DIR, 'logs'))


class DevConfig(Config):
    """Development configuration"""
    DEBUG = True
    FLASK_HOST = '0.0.0.0'
    FLASK_PORT = 5000

    STORAGE_PATH = str(Path(__file__).resolve().parents[1] / "carwithdriver-storage" / "database")
    DB_PATH = os.path.join(STORAGE_PATH, 'carwithdriver.db')
    SQLALCHEMY_DATABASE_URI = os.environ.get('SQLALCHEMY_DATABASE_URI', f"sqlite:///{DB_PATH}")


class TestConfig(Config):
    """Testing configuration - in-memory database, no rate limits"""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    RATELIMIT_ENABLED = False
    LOG_TO_FILE = False


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    FLASK_HOST = '::'
    FLASK_PORT = int(os.environ.get('FLASK_PORT', '5000'))
    SESSION_COOKIE_SECURE = True
    # Production database - MUST be set via environment
    SQLALCHEMY_DATABASE_URI = os.environ.get('SQLALCHEMY_DATABASE_URI')
