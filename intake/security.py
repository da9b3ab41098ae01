"""
intake/security.py

Access control helpers.

Key rules:
- Every API route requires login (flask_login session).
- ROLE_ADMIN: master data (products, suppliers, users, config) mutations.
- ROLE_USER: reports (create, items, finish, cancel, export) and reads.

Unauthenticated and forbidden responses are JSON, never redirects.

IMPORTANT:
- Decorators must preserve wrapped function metadata to avoid Flask endpoint collisions.
  We use functools.wraps everywhere.
"""

from __future__ import annotations

from functools import wraps
from typing import Any, Callable, Tuple

from flask import jsonify
from flask_login import current_user


def _forbidden() -> Tuple[Any, int]:
    return jsonify({"message": "Forbidden", "kind": "forbidden"}), 403


def unauthorized() -> Tuple[Any, int]:
    return jsonify({"message": "Authentication required", "kind": "unauthorized"}), 401


def is_admin() -> bool:
    """Return True if current user is authenticated and admin."""
    return bool(current_user.is_authenticated and getattr(current_user, "is_admin", False))


def admin_required(view_func: Callable[..., Any]) -> Callable[..., Any]:
    """Decorator: admin-only."""
    @wraps(view_func)
    def wrapper(*args: Any, **kwargs: Any):
        if not current_user.is_authenticated:
            return unauthorized()
        if not is_admin():
            return _forbidden()
        return view_func(*args, **kwargs)

    return wrapper
