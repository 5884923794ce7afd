"""Configuration module for Flask application."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Config:
    """Base configuration class."""

    # Flask
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = os.getenv('FLASK_DEBUG', '0') == '1'
    ENV = os.getenv('FLASK_ENV', 'development')

    # Session Configuration (Production-safe defaults)
    SESSION_COOKIE_SECURE = os.getenv('SESSION_COOKIE_SECURE', 'false').lower() == 'true'
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = os.getenv('SESSION_COOKIE_SAMESITE', 'Lax')
    PERMANENT_SESSION_LIFETIME = 86400  # 24 hours

    # Database - Priority: DATABASE_URL > DB_* > POSTGRES_*
    DATABASE_URL = os.getenv('DATABASE_URL')

    if not DATABASE_URL:
        DB_HOST = os.getenv('DB_HOST') or os.getenv('POSTGRES_HOST', 'localhost')
        DB_PORT = os.getenv('DB_PORT') or os.getenv('POSTGRES_PORT', '5432')
        DB_NAME = os.getenv('DB_NAME') or os.getenv('POSTGRES_DB', 'reviews360')
        DB_USER = os.getenv('DB_USER') or os.getenv('POSTGRES_USER', 'reviews360')
        DB_PASSWORD = os.getenv('DB_PASSWORD') or os.getenv('POSTGRES_PASSWORD', 'reviews360')

        DATABASE_URL = (
            f"postgresql+psycopg://{DB_USER}:{DB_PASSWORD}"
            f"@{DB_HOST}:{DB_PORT}/{DB_NAME}"
        )

    # SQLAlchemy
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_ECHO = os.getenv('SQLALCHEMY_ECHO', 'false').lower() == 'true'

    # Onboarding
    SIGNUP_MODE = os.getenv('SIGNUP_MODE', 'invite-only')  # or 'open-domain'
    INVITATION_EXPIRY_DAYS = int(os.getenv('INVITATION_EXPIRY_DAYS', '7'))
    TOKEN_BYTE_LENGTH = int(os.getenv('TOKEN_BYTE_LENGTH', '24'))  # never below 16
    APP_ORIGIN = os.getenv('APP_ORIGIN', 'http://localhost:5000')
    MIN_PASSWORD_LENGTH = int(os.getenv('MIN_PASSWORD_LENGTH', '8'))

    # Role policy switches
    CLIENT_ADMIN_CAN_ASSIGN_CLIENT_ADMIN = os.getenv('CLIENT_ADMIN_CAN_ASSIGN_CLIENT_ADMIN', 'true').lower() == 'true'
    AREA_ADMIN_CAN_INVITE_AREA_ADMIN = os.getenv('AREA_ADMIN_CAN_INVITE_AREA_ADMIN', 'false').lower() == 'true'


class TestConfig(Config):
    """Configuration for the test suite: SQLite, no CSRF."""
    TESTING = True
    DEBUG = False
    ENV = 'testing'
    WTF_CSRF_ENABLED = False
    SQLALCHEMY_DATABASE_URI = os.getenv('TEST_DATABASE_URL', 'sqlite:///reviews360-test.db')
    SQLALCHEMY_ECHO = False
    SIGNUP_MODE = 'invite-only'
