"""Settings blueprint package (products, suppliers, system config)."""

from .routes import settings_bp  # noqa: F401
