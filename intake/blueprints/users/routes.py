"""
User Management (Admin Only).

Rules enforced:
- Email is unique (case-insensitive, stored lower-case).
- Passwords are stored as werkzeug hashes and never returned.
- An admin cannot remove their own admin role or delete themselves.

Audit:
- CREATE / UPDATE / DELETE logged
"""

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from ...audit import log_action, serialize_model
from ...extensions import db
from ...models import ROLE_ADMIN, ROLE_DESCRIPTIONS, User
from ...pricing.errors import StateConflictError, ValidationError
from ...security import admin_required
from ...utils import get_or_404, json_body, page_args, paginated

users_bp = Blueprint("users", __name__)

MIN_PASSWORD_LENGTH = 6


def _email_taken(email: str, exclude_user_id: int | None = None) -> bool:
    q = User.query.filter(User.email == email)
    if exclude_user_id:
        q = q.filter(User.id != exclude_user_id)
    return q.first() is not None


def apply_user_payload(user: User, payload: dict, *, partial: bool) -> None:
    """Validate and copy firstName/lastName/email/password onto `user`."""
    errors = {}

    for key, attr in (("firstName", "first_name"), ("lastName", "last_name")):
        if partial and key not in payload:
            continue
        value = (payload.get(key) or "").strip()
        if not value:
            errors[key] = "This field is required."
        else:
            setattr(user, attr, value)

    if not partial or "email" in payload:
        email = (payload.get("email") or "").strip().lower()
        if "@" not in email:
            errors["email"] = "A valid email is required."
        elif _email_taken(email, exclude_user_id=user.id):
            errors["email"] = "Email already in use."
        else:
            user.email = email

    if not partial or payload.get("password"):
        password = payload.get("password") or ""
        if len(password) < MIN_PASSWORD_LENGTH:
            errors["password"] = f"Password must be at least {MIN_PASSWORD_LENGTH} characters."
        else:
            user.set_password(password)

    if errors:
        raise ValidationError.for_fields(errors)


# ---------------------------------------------------------------------
# LIST / DETAIL
# ---------------------------------------------------------------------
@users_bp.route("/users", methods=["GET"])
@login_required
@admin_required
def list_users():
    page, page_size = page_args()
    q = User.query
    search = (request.args.get("search") or "").strip()
    if search:
        like = f"%{search}%"
        q = q.filter(User.email.ilike(like) | User.first_name.ilike(like) | User.last_name.ilike(like))
    return jsonify(paginated(q.order_by(User.email.asc()), page, page_size, lambda u: u.to_dict()))


@users_bp.route("/users/<int:user_id>", methods=["GET"])
@login_required
@admin_required
def user_detail(user_id: int):
    return jsonify(get_or_404(User, user_id, "User").to_dict())


# ---------------------------------------------------------------------
# CREATE / UPDATE / DELETE
# ---------------------------------------------------------------------
@users_bp.route("/users", methods=["POST"])
@login_required
@admin_required
def create_user():
    payload = json_body()
    user = User(is_admin=False, is_active=True)
    apply_user_payload(user, payload, partial=False)
    user.is_admin = ROLE_ADMIN in (payload.get("roleNames") or [])

    db.session.add(user)
    db.session.flush()
    log_action(user, "CREATE", before=None, after=serialize_model(user))
    db.session.commit()
    return jsonify(user.to_dict()), 201


@users_bp.route("/users/<int:user_id>", methods=["PUT"])
@login_required
@admin_required
def update_user(user_id: int):
    user = get_or_404(User, user_id, "User")
    payload = json_body()
    before = serialize_model(user)

    apply_user_payload(user, payload, partial=True)
    if "isActive" in payload:
        if user.id == current_user.id and not payload["isActive"]:
            raise StateConflictError("You cannot deactivate your own account.")
        user.is_active = bool(payload["isActive"])

    db.session.flush()
    log_action(user, "UPDATE", before=before, after=serialize_model(user))
    db.session.commit()
    return jsonify(user.to_dict())


@users_bp.route("/users/<int:user_id>", methods=["DELETE"])
@login_required
@admin_required
def delete_user(user_id: int):
    user = get_or_404(User, user_id, "User")
    if user.id == current_user.id:
        raise StateConflictError("You cannot delete your own account.")

    before = serialize_model(user)
    db.session.delete(user)
    db.session.flush()
    log_action(user, "DELETE", before=before, after=None)
    db.session.commit()
    return "", 204


# ---------------------------------------------------------------------
# ROLES
# ---------------------------------------------------------------------
@users_bp.route("/users/<int:user_id>/roles", methods=["PUT"])
@login_required
@admin_required
def update_user_roles(user_id: int):
    user = get_or_404(User, user_id, "User")
    role_names = json_body().get("roleNames") or []

    if not isinstance(role_names, list) or any(name not in ROLE_DESCRIPTIONS for name in role_names):
        raise ValidationError.for_fields({"roleNames": "Unknown role."})

    make_admin = ROLE_ADMIN in role_names
    if user.id == current_user.id and not make_admin:
        raise StateConflictError("You cannot remove your own admin role.")

    before = serialize_model(user)
    user.is_admin = make_admin
    db.session.flush()
    log_action(user, "UPDATE", before=before, after=serialize_model(user))
    db.session.commit()
    return jsonify(user.to_dict())


@users_bp.route("/roles", methods=["GET"])
@login_required
def list_roles():
    return jsonify([{"name": name, "description": desc} for name, desc in ROLE_DESCRIPTIONS.items()])
