"""
Application configuration.

Values come from environment variables with development defaults. In
production set SECRET_KEY and DATABASE_URL explicitly.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent


class Config:
    """Base configuration shared by all environments."""

    # IMPORTANT: change this in production
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-change-me-please")

    # Database: SQLite for development (simple file in project folder)
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        f"sqlite:///{BASE_DIR / 'intake.db'}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # CSRF protection for mutating requests (token returned by /auth/login)
    WTF_CSRF_ENABLED = os.environ.get("WTF_CSRF_ENABLED", "1") == "1"

    APP_NAME = "Recycling Intake"

    # Surcharge applied when the config row is first created
    DEFAULT_EXTRA_PERCENTAGE = os.environ.get("DEFAULT_EXTRA_PERCENTAGE", "0")

    REPORTS_PAGE_SIZE = int(os.environ.get("REPORTS_PAGE_SIZE", "5"))
    MAX_PAGE_SIZE = int(os.environ.get("MAX_PAGE_SIZE", "100"))

    # Advisory |net - sum(items)| tolerance in quintals
    WEIGHT_DIVERGENCE_TOLERANCE = os.environ.get("WEIGHT_DIVERGENCE_TOLERANCE", "5")

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    WTF_CSRF_ENABLED = False
    SECRET_KEY = "testing"
    LOG_LEVEL = "DEBUG"
