"""Settings shared by every environment."""
import os
from datetime import timedelta

from attendance_engine import constants


class BaseConfig:
    """Base configuration class."""

    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')

    # Database
    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL', 'sqlite:///attendance_dev.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = False

    # Document store backend: 'sql' or 'memory'
    STORE_BACKEND = os.getenv('STORE_BACKEND', 'sql')

    # Redis (optional; enables cross-process key locks)
    REDIS_URL = os.getenv('REDIS_URL')

    # JWT Configuration
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY', 'jwt-secret-key-change-in-production')
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=2)
    JWT_ALGORITHM = 'HS256'

    # CORS
    CORS_ORIGINS = ["http://localhost:*", "http://127.0.0.1:*"]

    # Rate Limiting
    RATELIMIT_STORAGE_URI = os.getenv('REDIS_URL') or 'memory://'
    RATELIMIT_DEFAULT = "200 per day;50 per hour"

    # Verification
    GEOFENCE_RADIUS_METERS = constants.GEOFENCE_RADIUS_METERS
    FACE_MATCH_THRESHOLD = constants.FACE_MATCH_THRESHOLD
    SCAN_TIMEOUT_SECONDS = constants.SCAN_TIMEOUT_SECONDS
    LOCATION_TIMEOUT_SECONDS = constants.LOCATION_TIMEOUT_SECONDS
    QR_ROTATION_INTERVAL_MS = constants.QR_ROTATION_INTERVAL_MS
    QR_FRESHNESS_WINDOW_MS = constants.QR_FRESHNESS_WINDOW_MS
    TOKEN_ROTATION_ENABLED = True

    # Sessions and alerts
    SESSION_STALENESS_MINUTES = constants.SESSION_STALENESS_MINUTES
    ALERT_WARNING_THRESHOLD = constants.ALERT_WARNING_THRESHOLD
    ALERT_CRITICAL_THRESHOLD = constants.ALERT_CRITICAL_THRESHOLD

    # Face images arrive as base64 in JSON bodies
    MAX_CONTENT_LENGTH = 8 * 1024 * 1024

    # Logging
    LOG_LEVEL = 'INFO'
    LOG_FILE = 'logs/app.log'
