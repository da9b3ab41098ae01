"""
intake/__init__.py

Flask application factory for the Recycling Intake dashboard API.

- SQLite for development, any SQLAlchemy URL in production (migrations via
  Flask-Migrate).
- JSON only: errors, 401 and 403 are returned as JSON bodies.
- The client is never trusted; lifecycle and access rules are enforced
  server-side.
"""

from __future__ import annotations

import logging

import click
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from .extensions import csrf, db, login_manager, migrate
from .models import User
from .pricing.errors import IntakeError
from .security import unauthorized

logger = logging.getLogger(__name__)


def create_app(config_object: str | object = "config.Config") -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    logging.getLogger("intake").setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Extensions
    db.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)
    login_manager.init_app(app)

    @login_manager.user_loader
    def load_user(user_id: str) -> User | None:
        """Load user for Flask-Login."""
        try:
            return db.session.get(User, int(user_id))
        except (TypeError, ValueError):
            return None

    login_manager.unauthorized_handler(unauthorized)

    # ----------------------------------------------------------------------
    # Errors
    # ----------------------------------------------------------------------
    @app.errorhandler(IntakeError)
    def _intake_error(error: IntakeError):
        db.session.rollback()
        if error.status_code >= 500:
            logger.error("Request failed: %s", error.message)
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def _http_error(error: HTTPException):
        kind = (error.name or "error").lower().replace(" ", "_")
        return jsonify({"message": error.description, "kind": kind}), error.code

    # ----------------------------------------------------------------------
    # Blueprints
    # ----------------------------------------------------------------------
    from .blueprints.auth import auth_bp
    from .blueprints.reports import reports_bp
    from .blueprints.settings import settings_bp
    from .blueprints.users import users_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(settings_bp)
    app.register_blueprint(users_bp)

    # ----------------------------------------------------------------------
    # CLI
    # ----------------------------------------------------------------------
    @app.cli.command("init-db")
    def init_db_command():
        """Create all tables (development shortcut, use migrations in production)."""
        db.create_all()
        click.echo("Database tables created.")

    @app.cli.command("seed-defaults")
    def seed_defaults_command():
        """Seed the system config row and default products."""
        from .seed import seed_defaults

        seed_defaults()
        click.echo("Default config and products seeded.")

    @app.route("/health")
    def health():
        return jsonify({"status": "ok", "app": app.config.get("APP_NAME")})

    return app
