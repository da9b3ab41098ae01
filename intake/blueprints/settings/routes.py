"""
intake/blueprints/settings/routes.py

Settings & master data routes.

Scope:
- Products CRUD (reads: all users, mutations: admin-only)
- Suppliers CRUD (reads: all users, mutations: admin-only)
- System config: surcharge percentage (read: all users, update: admin-only)

AUDIT:
- CREATE/UPDATE/DELETE for master data is audited via intake/audit.py.
"""

from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import login_required
from sqlalchemy.exc import IntegrityError

from ...audit import log_action, serialize_model
from ...extensions import db
from ...models import Product, ReportItem, Report, Supplier
from ...pricing.errors import StateConflictError, ValidationError
from ...pricing.lifecycle import parse_decimal
from ...pricing.units import round_money
from ...security import admin_required
from ...services import reports as report_service
from ...utils import get_or_404, json_body, page_args, paginated

settings_bp = Blueprint("settings", __name__)


def _text(payload: dict, key: str) -> str:
    return (str(payload.get(key) or "")).strip()


# ----------------------------------------------------------------------
# PRODUCTS
# ----------------------------------------------------------------------
def _apply_product_payload(product: Product, payload: dict, *, partial: bool) -> None:
    errors = {}

    if not partial or "name" in payload:
        name = _text(payload, "name")
        if not name:
            errors["name"] = "Name is required."
        else:
            product.name = name

    if not partial or "pricePerQuintal" in payload:
        price = parse_decimal(payload.get("pricePerQuintal"))
        if price is None or price < 0:
            errors["pricePerQuintal"] = "Price per quintal must be 0 or greater."
        else:
            product.price_per_quintal = round_money(price)

    if errors:
        raise ValidationError.for_fields(errors)


@settings_bp.route("/products", methods=["GET"])
@login_required
def products_list():
    page, page_size = page_args()
    q = Product.query
    search = (request.args.get("search") or "").strip()
    if search:
        q = q.filter(Product.name.ilike(f"%{search}%"))
    return jsonify(paginated(q.order_by(Product.name.asc()), page, page_size, lambda p: p.to_dict()))


@settings_bp.route("/products/<int:product_id>", methods=["GET"])
@login_required
def product_detail(product_id: int):
    return jsonify(get_or_404(Product, product_id, "Product").to_dict())


@settings_bp.route("/products", methods=["POST"])
@login_required
@admin_required
def product_create():
    product = Product()
    _apply_product_payload(product, json_body(), partial=False)

    db.session.add(product)
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError.for_fields({"name": "A product with this name already exists."})

    log_action(product, "CREATE", before=None, after=serialize_model(product))
    db.session.commit()
    return jsonify(product.to_dict()), 201


@settings_bp.route("/products/<int:product_id>", methods=["PUT"])
@login_required
@admin_required
def product_update(product_id: int):
    product = get_or_404(Product, product_id, "Product")
    before = serialize_model(product)
    _apply_product_payload(product, json_body(), partial=True)

    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError.for_fields({"name": "A product with this name already exists."})

    log_action(product, "UPDATE", before=before, after=serialize_model(product))
    db.session.commit()
    return jsonify(product.to_dict())


@settings_bp.route("/products/<int:product_id>", methods=["DELETE"])
@login_required
@admin_required
def product_delete(product_id: int):
    product = get_or_404(Product, product_id, "Product")

    if ReportItem.query.filter_by(product_id=product.id).first():
        raise StateConflictError("The product is used by report items and cannot be deleted.")

    before = serialize_model(product)
    db.session.delete(product)
    db.session.flush()
    log_action(product, "DELETE", before=before, after=None)
    db.session.commit()
    return "", 204


# ----------------------------------------------------------------------
# SUPPLIERS
# ----------------------------------------------------------------------
SUPPLIER_FIELDS = {
    "name": "name",
    "address": "address",
    "phone": "phone",
    "representative": "representative",
}


def _apply_supplier_payload(supplier: Supplier, payload: dict, *, partial: bool) -> None:
    if not partial or "name" in payload:
        name = _text(payload, "name")
        if not name:
            raise ValidationError.for_fields({"name": "Name is required."})

    for key, attr in SUPPLIER_FIELDS.items():
        if partial and key not in payload:
            continue
        setattr(supplier, attr, _text(payload, key) or None)


@settings_bp.route("/suppliers", methods=["GET"])
@login_required
def suppliers_list():
    page, page_size = page_args()
    q = Supplier.query
    search = (request.args.get("search") or "").strip()
    if search:
        like = f"%{search}%"
        q = q.filter(Supplier.name.ilike(like) | Supplier.representative.ilike(like))
    return jsonify(paginated(q.order_by(Supplier.name.asc()), page, page_size, lambda s: s.to_dict()))


@settings_bp.route("/suppliers/<int:supplier_id>", methods=["GET"])
@login_required
def supplier_detail(supplier_id: int):
    return jsonify(get_or_404(Supplier, supplier_id, "Supplier").to_dict())


@settings_bp.route("/suppliers", methods=["POST"])
@login_required
@admin_required
def supplier_create():
    supplier = Supplier()
    _apply_supplier_payload(supplier, json_body(), partial=False)

    db.session.add(supplier)
    db.session.flush()
    log_action(supplier, "CREATE", before=None, after=serialize_model(supplier))
    db.session.commit()
    return jsonify(supplier.to_dict()), 201


@settings_bp.route("/suppliers/<int:supplier_id>", methods=["PUT"])
@login_required
@admin_required
def supplier_update(supplier_id: int):
    supplier = get_or_404(Supplier, supplier_id, "Supplier")
    before = serialize_model(supplier)
    _apply_supplier_payload(supplier, json_body(), partial=True)

    db.session.flush()
    log_action(supplier, "UPDATE", before=before, after=serialize_model(supplier))
    db.session.commit()
    return jsonify(supplier.to_dict())


@settings_bp.route("/suppliers/<int:supplier_id>", methods=["DELETE"])
@login_required
@admin_required
def supplier_delete(supplier_id: int):
    supplier = get_or_404(Supplier, supplier_id, "Supplier")

    if Report.query.filter_by(supplier_id=supplier.id).first():
        raise StateConflictError("The supplier has reports and cannot be deleted.")

    before = serialize_model(supplier)
    db.session.delete(supplier)
    db.session.flush()
    log_action(supplier, "DELETE", before=before, after=None)
    db.session.commit()
    return "", 204


# ----------------------------------------------------------------------
# SYSTEM CONFIG
# ----------------------------------------------------------------------
@settings_bp.route("/config", methods=["GET"])
@login_required
def config_detail():
    config = report_service.get_config()
    db.session.commit()
    return jsonify(config.to_dict())


@settings_bp.route("/config", methods=["PUT"])
@login_required
@admin_required
def config_update():
    config = report_service.update_config(json_body())
    db.session.commit()
    return jsonify(config.to_dict())
