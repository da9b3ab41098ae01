"""
Recycling Intake – Domain Models

Master data:
- User (staff login, ROLE_ADMIN / ROLE_USER)
- Supplier
- Product (current price per quintal)
- SystemConfig (singleton surcharge percentage)

Intake:
- Report (weigh-in ticket, lifecycle PENDING -> APPROVED | CANCELLED)
- ReportItem (priced line, snapshots the product price)

Audit:
- AuditLog

IMPORTANT:
- Money columns are Numeric(12, 2), quintal weights Numeric(12, 4).
- State transitions and item pricing are NOT done here. See
  intake/pricing/lifecycle.py and intake/services/reports.py.
- to_dict() methods emit the camelCase wire shape used by the dashboard.
"""

from __future__ import annotations

import json
from datetime import date, datetime, timezone
from decimal import Decimal

from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from .extensions import db
from .pricing.lifecycle import ReportState
from .pricing.units import to_decimal

ROLE_ADMIN = "ROLE_ADMIN"
ROLE_USER = "ROLE_USER"

ROLE_DESCRIPTIONS = {
    ROLE_ADMIN: "Administrador",
    ROLE_USER: "Usuario",
}


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------
def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _num(value) -> float | None:
    """Numeric column -> JSON number."""
    if value is None:
        return None
    return float(to_decimal(value))


def _iso(value: datetime | date | None) -> str | None:
    return value.isoformat() if value else None


# ---------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------
class User(UserMixin, db.Model):
    """System login user."""

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    first_name = db.Column(db.String(120), nullable=False)
    last_name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)

    is_admin = db.Column(db.Boolean, default=False, nullable=False, index=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    def set_password(self, password: str):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def role_names(self) -> list[str]:
        return [ROLE_ADMIN] if self.is_admin else [ROLE_USER]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "email": self.email,
            "isActive": self.is_active,
            "roles": [{"name": name, "description": ROLE_DESCRIPTIONS[name]} for name in self.role_names],
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<User {self.email}>"


# ---------------------------------------------------------------------
# Master data
# ---------------------------------------------------------------------
class Supplier(db.Model):
    __tablename__ = "suppliers"

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False, index=True)
    address = db.Column(db.String(255))
    phone = db.Column(db.String(50))
    representative = db.Column(db.String(255))

    created_at = db.Column(db.DateTime, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address or "",
            "phone": self.phone or "",
            "representative": self.representative or "",
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<Supplier {self.name}>"


class Product(db.Model):
    """Recyclable material. The price is mutable; report items keep a snapshot."""

    __tablename__ = "products"

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False, unique=True, index=True)
    price_per_quintal = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))

    created_at = db.Column(db.DateTime, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "pricePerQuintal": _num(self.price_per_quintal),
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<Product {self.name}>"


class SystemConfig(db.Model):
    """Singleton row holding the global surcharge percentage."""

    __tablename__ = "system_config"

    id = db.Column(db.Integer, primary_key=True)

    extra_percentage = db.Column(db.Numeric(6, 2), nullable=False, default=Decimal("0.00"))

    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    @classmethod
    def get_or_create(cls, default_percentage="0") -> "SystemConfig":
        config = cls.query.order_by(cls.id.asc()).first()
        if config is None:
            config = cls(extra_percentage=to_decimal(default_percentage))
            db.session.add(config)
            db.session.flush()
        return config

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "extraPercentage": _num(self.extra_percentage),
            "updatedAt": _iso(self.updated_at),
        }


# ---------------------------------------------------------------------
# Intake domain
# ---------------------------------------------------------------------
class Report(db.Model):
    """Weigh-in ticket."""

    __tablename__ = "reports"

    id = db.Column(db.Integer, primary_key=True)

    report_date = db.Column(db.Date, nullable=False, default=lambda: utcnow().date(), index=True)
    ticket_number = db.Column(db.String(30), unique=True, nullable=True, index=True)
    plate_number = db.Column(db.String(30), nullable=False, index=True)
    driver_name = db.Column(db.String(255), nullable=False)

    supplier_id = db.Column(
        db.Integer,
        db.ForeignKey("suppliers.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    gross_weight = db.Column(db.Numeric(12, 4), nullable=False)
    tare_weight = db.Column(db.Numeric(12, 4), nullable=False, default=Decimal("0"))
    net_weight = db.Column(db.Numeric(12, 4), nullable=False, default=Decimal("0"))

    extra_percentage = db.Column(db.Numeric(6, 2), nullable=False, default=Decimal("0.00"))
    base_price = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    total_price = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))

    state = db.Column(db.String(20), nullable=False, default=ReportState.PENDING.value, index=True)

    created_at = db.Column(db.DateTime, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    supplier = db.relationship("Supplier", backref=db.backref("reports", lazy=True))
    user = db.relationship("User", backref=db.backref("reports", lazy=True))

    items = db.relationship(
        "ReportItem",
        back_populates="report",
        cascade="all, delete-orphan",
        order_by="ReportItem.id",
    )

    @property
    def report_state(self) -> ReportState:
        return ReportState(self.state)

    def accumulated_quintals(self) -> Decimal:
        return sum((to_decimal(item.weight_in_quintals) for item in self.items), Decimal("0"))

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "reportDate": _iso(self.report_date),
            "ticketNumber": self.ticket_number,
            "plateNumber": self.plate_number,
            "supplierId": self.supplier_id,
            "supplier": self.supplier.to_dict() if self.supplier else None,
            "userId": self.user_id,
            "user": self.user.to_dict() if self.user else None,
            "grossWeight": _num(self.gross_weight),
            "tareWeight": _num(self.tare_weight),
            "netWeight": _num(self.net_weight),
            "extraPercentage": _num(self.extra_percentage),
            "basePrice": _num(self.base_price),
            "totalPrice": _num(self.total_price),
            "driverName": self.driver_name,
            "state": self.state,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data

    def __repr__(self):
        return f"<Report {self.ticket_number or self.id} {self.state}>"


class ReportItem(db.Model):
    """Priced line of a report. Immutable once created (delete only)."""

    __tablename__ = "report_items"

    id = db.Column(db.Integer, primary_key=True)

    report_id = db.Column(
        db.Integer,
        db.ForeignKey("reports.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    weight = db.Column(db.Numeric(12, 4), nullable=False)
    weight_unit = db.Column(db.String(20), nullable=False)
    weight_in_quintals = db.Column(db.Numeric(12, 4), nullable=False)

    # Snapshot of Product.price_per_quintal at creation time
    price_per_quintal = db.Column(db.Numeric(12, 2), nullable=False)
    base_price = db.Column(db.Numeric(12, 2), nullable=False)

    discount_weight = db.Column(db.Numeric(12, 4), nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow)

    report = db.relationship("Report", back_populates="items")
    product = db.relationship("Product", backref=db.backref("report_items", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "reportId": self.report_id,
            "productId": self.product_id,
            "product": self.product.to_dict() if self.product else None,
            "weight": _num(self.weight),
            "weightUnit": self.weight_unit,
            "weightInQuintals": _num(self.weight_in_quintals),
            "pricePerQuintal": _num(self.price_per_quintal),
            "basePrice": _num(self.base_price),
            "discountWeight": _num(self.discount_weight),
            "createdAt": _iso(self.created_at),
        }


# ---------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------
class AuditLog(db.Model):
    """Audit trail of every mutation."""

    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    username_snapshot = db.Column(db.String(255), nullable=True)

    entity_type = db.Column(db.String(50), nullable=False, index=True)
    entity_id = db.Column(db.Integer, nullable=False, index=True)

    action = db.Column(db.String(20), nullable=False, index=True)

    before_data = db.Column(db.Text, nullable=True)
    after_data = db.Column(db.Text, nullable=True)

    ip_address = db.Column(db.String(45), nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow, index=True)

    user = db.relationship("User", backref=db.backref("audit_entries", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "user": self.username_snapshot,
            "entityType": self.entity_type,
            "entityId": self.entity_id,
            "action": self.action,
            "before": json.loads(self.before_data) if self.before_data else None,
            "after": json.loads(self.after_data) if self.after_data else None,
            "ipAddress": self.ip_address,
            "createdAt": _iso(self.created_at),
        }
