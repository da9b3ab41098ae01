"""
Authentication Routes

Provides:
- POST /auth/login      (email + password, session cookie, returns CSRF token)
- POST /auth/logout
- GET  /auth/me
- PUT  /auth/me         (own name, email and password)
- POST /auth/seed-admin (first system bootstrap)

Rules:
- Only active users may log in.
- Bootstrap is blocked once any user exists.
- Changing your own password requires the current one. Roles and the active
  flag are admin-only and ignored here.
"""

from flask import Blueprint, jsonify
from flask_login import current_user, login_required, login_user, logout_user
from flask_wtf.csrf import generate_csrf

from ...audit import log_action, serialize_model
from ...extensions import csrf, db
from ...models import User
from ...pricing.errors import StateConflictError, ValidationError
from ...utils import json_body
from ..users.routes import apply_user_payload

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


# ============================================================
# LOGIN
# ============================================================

@auth_bp.route("/login", methods=["POST"])
@csrf.exempt
def login():
    """
    Authenticate a user.

    - Only active users may log in
    - Credentials validated via password hash
    """
    payload = json_body()
    email = (payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""

    user = User.query.filter_by(email=email).first()

    if not user or not user.check_password(password):
        raise ValidationError("Invalid email or password.")

    if not user.is_active:
        raise ValidationError("The account is inactive.")

    login_user(user)
    return jsonify({"user": user.to_dict(), "csrfToken": generate_csrf()})


# ============================================================
# LOGOUT / ME
# ============================================================

@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    """Log out the current user."""
    logout_user()
    return "", 204


@auth_bp.route("/me", methods=["GET"])
@login_required
def me():
    return jsonify(current_user.to_dict())


@auth_bp.route("/me", methods=["PUT"])
@login_required
def update_me():
    payload = json_body()
    user = current_user._get_current_object()

    if payload.get("password") and not user.check_password(payload.get("currentPassword") or ""):
        raise ValidationError.for_fields({"currentPassword": "Current password is incorrect."})

    before = serialize_model(user)
    profile = {k: payload[k] for k in ("firstName", "lastName", "email", "password") if k in payload}
    apply_user_payload(user, profile, partial=True)

    db.session.flush()
    log_action(user, "UPDATE", before=before, after=serialize_model(user))
    db.session.commit()
    return jsonify(user.to_dict())


# ============================================================
# SEED FIRST ADMIN (BOOTSTRAP)
# ============================================================

@auth_bp.route("/seed-admin", methods=["POST"])
@csrf.exempt
def seed_admin():
    """
    Bootstrap the FIRST admin of the system.

    If ANY user already exists the request is rejected.
    """
    if User.query.count() > 0:
        raise StateConflictError("A user already exists.")

    payload = json_body()
    email = (payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""

    if "@" not in email or not password:
        raise ValidationError.for_fields({"email": "Email and password are required."})

    user = User(
        first_name=(payload.get("firstName") or "System").strip(),
        last_name=(payload.get("lastName") or "Administrator").strip(),
        email=email,
        is_admin=True,
        is_active=True,
    )
    user.set_password(password)

    db.session.add(user)
    db.session.commit()

    return jsonify(user.to_dict()), 201
