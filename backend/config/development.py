"""Development configuration."""
import os

from .base import BaseConfig


class DevelopmentConfig(BaseConfig):
    """Development configuration class."""

    DEBUG = True
    TESTING = False

    SQLALCHEMY_DATABASE_URI = os.getenv('DEV_DATABASE_URL', 'sqlite:///attendance_dev.db')
    SQLALCHEMY_ECHO = False

    # Relaxed for local work
    CORS_ORIGINS = ["*"]
    RATELIMIT_ENABLED = False

    LOG_LEVEL = 'DEBUG'
