"""
Configuration settings for the Lecturer Attendance Management System
"""

import os
from datetime import timedelta


def _env_float(name, default):
    try:
        return float(os.environ.get(name, default))
    except (TypeError, ValueError):
        return float(default)


def _env_int(name, default):
    try:
        return int(os.environ.get(name, default))
    except (TypeError, ValueError):
        return int(default)


def _env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """Base configuration class"""

    # Flask settings
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'attendance-secret-key-change-me'

    # Database settings
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///attendance.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Session settings
    PERMANENT_SESSION_LIFETIME = timedelta(hours=8)
    SESSION_COOKIE_SECURE = _env_bool('SESSION_COOKIE_SECURE', False)
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'

    # File upload settings
    MAX_CONTENT_LENGTH = 16 * 1024 * 1024  # 16MB max file size
    UPLOAD_FOLDER = os.environ.get('UPLOAD_FOLDER') or 'uploads'
    REPORTS_FOLDER = os.environ.get('REPORTS_FOLDER') or 'reports'
    ALLOWED_EXTENSIONS = {'xlsx'}

    # Application settings
    ITEMS_PER_PAGE = 50
    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'INFO'
    INSTITUTION_NAME = os.environ.get('INSTITUTION_NAME') or 'UPSA Graduate School'
    CLAIM_RECEIVING_OFFICER = os.environ.get('CLAIM_RECEIVING_OFFICER')

    # Campus geofence
    CAMPUS_LATITUDE = _env_float('CAMPUS_GPS_LATITUDE', 5.6037)
    CAMPUS_LONGITUDE = _env_float('CAMPUS_GPS_LONGITUDE', -0.1870)
    CAMPUS_RADIUS_METERS = _env_int('CAMPUS_GPS_RADIUS', 300)

    # Virtual classroom rules
    VIRTUAL_TIME_WINDOW_MINUTES = _env_int('VIRTUAL_TIME_WINDOW_MINUTES', 15)
    MINIMUM_SESSION_DURATION_PERCENTAGE = _env_float('MINIMUM_SESSION_DURATION_PERCENTAGE', 0.75)
    SUPPORTED_MEETING_DOMAINS = (
        'zoom.us',
        'meet.google.com',
        'teams.microsoft.com',
        'teams.live.com',
        'webex.com',
        'gotomeeting.com',
    )

    # Audit settings
    AUDIT_RETENTION_DAYS = _env_int('AUDIT_RETENTION_DAYS', 365)

    # Scheduled reports
    SCHEDULER_POLL_MINUTES = _env_int('SCHEDULER_POLL_MINUTES', 5)

    # Mail settings (Flask-Mail)
    MAIL_ENABLED = _env_bool('MAIL_ENABLED', False)
    MAIL_SERVER = os.environ.get('MAIL_SERVER') or 'localhost'
    MAIL_PORT = _env_int('MAIL_PORT', 25)
    MAIL_USE_TLS = _env_bool('MAIL_USE_TLS', False)
    MAIL_USERNAME = os.environ.get('MAIL_USERNAME')
    MAIL_PASSWORD = os.environ.get('MAIL_PASSWORD')
    MAIL_DEFAULT_SENDER = os.environ.get('MAIL_DEFAULT_SENDER') or 'noreply@attendance.local'

    # Security settings
    WTF_CSRF_ENABLED = True
    WTF_CSRF_TIME_LIMIT = None
    ENCRYPTION_KEY = os.environ.get('ENCRYPTION_KEY')

    # Default administrator created on first start
    DEFAULT_ADMIN_EMAIL = os.environ.get('DEFAULT_ADMIN_EMAIL') or 'admin@attendance.local'
    DEFAULT_ADMIN_PASSWORD = os.environ.get('DEFAULT_ADMIN_PASSWORD') or 'admin123'


class TestingConfig(Config):
    """Configuration used by the test suite"""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    WTF_CSRF_ENABLED = False
    MAIL_ENABLED = False
    MAIL_SUPPRESS_SEND = True
    LOG_LEVEL = 'WARNING'
