"""
intake/seed.py

Seed default master data.

Rules:
- Safe to run multiple times (idempotent).
- The SystemConfig singleton is created with DEFAULT_EXTRA_PERCENTAGE.
- Products are matched by name; an existing product keeps its current price
  (prices are managed by admins once the product exists).

NOTE:
- Suppliers and users are not seeded here. The first admin is created with
  POST /auth/seed-admin.
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app

from .extensions import db
from .models import Product, SystemConfig

DEFAULT_PRODUCTS = [
    # name, price per quintal
    ("Cartón", Decimal("0.00")),
    ("Papel", Decimal("0.00")),
    ("PET", Decimal("0.00")),
    ("Aluminio", Decimal("0.00")),
    ("Chatarra", Decimal("0.00")),
]


def seed_defaults() -> None:
    """Create the config row and the default products if they don't exist."""
    SystemConfig.get_or_create(current_app.config.get("DEFAULT_EXTRA_PERCENTAGE", "0"))

    for name, price in DEFAULT_PRODUCTS:
        if Product.query.filter_by(name=name).first():
            continue
        db.session.add(Product(name=name, price_per_quintal=price))

    db.session.commit()
