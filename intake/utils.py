"""
Utility functions shared by the blueprints:
- json_body: request JSON as a dict (empty dict for missing/invalid bodies).
- parse_optional_int: tolerant int parsing for ids and query args.
- page_args / paginated: page + pageSize handling and the paginated response shape.
"""

from __future__ import annotations

import math
from typing import Any, Callable

from flask import current_app, request

from .extensions import db
from .pricing.errors import NotFoundError


def json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def parse_optional_int(value: Any) -> int | None:
    """Parse optional int from form/query/JSON. None for empty/invalid."""
    if value is None or isinstance(value, bool):
        return None
    raw = str(value).strip()
    if raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def get_or_404(model, raw_id: Any, label: str):
    """Load a row by id or raise NotFoundError."""
    obj_id = parse_optional_int(raw_id)
    obj = db.session.get(model, obj_id) if obj_id is not None else None
    if obj is None:
        raise NotFoundError(f"{label} {raw_id} not found.")
    return obj


def page_args(default_page_size: int = 10) -> tuple[int, int]:
    """Read page/pageSize from the query string, clamped to sane values."""
    page = parse_optional_int(request.args.get("page")) or 1
    page_size = parse_optional_int(request.args.get("pageSize")) or default_page_size
    max_page_size = current_app.config.get("MAX_PAGE_SIZE", 100)
    return max(page, 1), min(max(page_size, 1), max_page_size)


def paginated(query, page: int, page_size: int, serialize: Callable[[Any], dict]) -> dict:
    """Run a Flask-SQLAlchemy paginate() and build {data, total, page, pageSize, totalPages}."""
    result = query.paginate(page=page, per_page=page_size, error_out=False)
    total = result.total or 0
    return {
        "data": [serialize(obj) for obj in result.items],
        "total": total,
        "page": page,
        "pageSize": page_size,
        "totalPages": math.ceil(total / page_size) if total else 0,
    }
