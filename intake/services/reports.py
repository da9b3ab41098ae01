"""
intake/services/reports.py

Authoritative Report Service.

Owns persistence of reports and their items and enforces the lifecycle
(intake/pricing/lifecycle.py) on every mutation:
- create_report   -> PENDING, no items (optionally with initial items)
- add_item        -> PENDING only, server recomputes quintals and price
- remove_item     -> PENDING only
- finish_report   -> PENDING -> APPROVED, config surcharge read once
- cancel_report   -> PENDING -> CANCELLED

IMPORTANT:
- Functions add to the current SQLAlchemy session and audit the change.
  The calling route commits.
- Every check runs before the first mutation, so a rejected call leaves the
  session untouched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Mapping

from flask import current_app
from flask_login import current_user
from sqlalchemy import or_
from sqlalchemy.orm import selectinload

from ..audit import log_action, serialize_model
from ..extensions import db
from ..models import Product, Report, ReportItem, Supplier, SystemConfig, utcnow
from ..pricing import lifecycle
from ..pricing.calculator import price_item
from ..pricing.errors import NotFoundError, ValidationError
from ..pricing.lifecycle import ItemInput, ReportHeader, ReportState, parse_decimal
from ..pricing.units import round_money, round_weight, to_decimal
from ..utils import parse_optional_int

logger = logging.getLogger(__name__)

TICKET_PREFIX = "TK-"


# ---------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------
def get_report(report_id: Any, *, lock: bool = False) -> Report:
    """Load a report or raise NotFoundError. `lock` takes a row lock for mutations."""
    rid = parse_optional_int(report_id)
    report = db.session.get(Report, rid, with_for_update=lock) if rid is not None else None
    if report is None:
        raise NotFoundError(f"Report {report_id} not found.")
    return report


def ticket_number_for(report_id: int) -> str:
    return f"{TICKET_PREFIX}{report_id:06d}"


# ---------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------
def get_config() -> SystemConfig:
    return SystemConfig.get_or_create(current_app.config.get("DEFAULT_EXTRA_PERCENTAGE", "0"))


def update_config(payload: Mapping[str, Any]) -> SystemConfig:
    pct = parse_decimal(payload.get("extraPercentage"))
    if pct is None or pct < 0 or pct > 100:
        raise ValidationError.for_fields({"extraPercentage": "Percentage must be between 0 and 100."})

    config = get_config()
    before = serialize_model(config)
    config.extra_percentage = round_money(pct)
    config.updated_at = utcnow()
    db.session.flush()
    log_action(config, "UPDATE", before=before, after=serialize_model(config))
    logger.info("Surcharge percentage set to %s", config.extra_percentage)
    return config


# ---------------------------------------------------------------------
# Lifecycle operations
# ---------------------------------------------------------------------
def _resolve_supplier(header: ReportHeader) -> Supplier:
    supplier_id = parse_optional_int(header.supplier_id)
    supplier = db.session.get(Supplier, supplier_id) if supplier_id is not None else None
    if supplier is None:
        raise ValidationError.for_fields({"supplierId": "Unknown supplier."})
    return supplier


def _resolve_product(item: ItemInput) -> Product:
    product_id = parse_optional_int(item.product_id)
    product = db.session.get(Product, product_id) if product_id is not None else None
    if product is None:
        raise ValidationError.for_fields({"productId": "Unknown product."})
    return product


def _build_item(item: ItemInput, product: Product) -> ReportItem:
    """Price a line with the product's current price and snapshot that price."""
    weight_in_quintals, base_price = price_item(product.price_per_quintal, item.weight, item.weight_unit)
    return ReportItem(
        product=product,
        weight=item.weight,
        weight_unit=item.weight_unit.value,
        weight_in_quintals=weight_in_quintals,
        price_per_quintal=round_money(product.price_per_quintal),
        base_price=base_price,
        discount_weight=item.discount_weight,
    )


def create_report(payload: Mapping[str, Any]) -> Report:
    """Create a PENDING report. Optional `items` are validated and added atomically."""
    header = ReportHeader.from_payload(payload)
    supplier = _resolve_supplier(header)

    initial_items = []
    for raw in payload.get("items") or []:
        item = ItemInput.from_payload(raw)
        initial_items.append((item, _resolve_product(item)))

    report = Report(
        report_date=header.report_date or utcnow().date(),
        plate_number=header.plate_number,
        driver_name=header.driver_name,
        supplier=supplier,
        user_id=current_user.id if current_user.is_authenticated else None,
        gross_weight=header.gross_weight,
        tare_weight=Decimal("0"),
        net_weight=Decimal("0"),
        extra_percentage=Decimal("0.00"),
        base_price=Decimal("0.00"),
        total_price=Decimal("0.00"),
        state=ReportState.PENDING.value,
    )
    for item, product in initial_items:
        report.items.append(_build_item(item, product))

    db.session.add(report)
    db.session.flush()
    report.ticket_number = ticket_number_for(report.id)

    log_action(report, "CREATE", before=None, after=serialize_model(report))
    logger.info("Report %s created (gross %s qq, %d items)", report.ticket_number, report.gross_weight, len(report.items))
    return report


def add_item(report_id: Any, payload: Mapping[str, Any]) -> Report:
    report = get_report(report_id, lock=True)
    lifecycle.ensure_items_mutable(report.state)

    item = ItemInput.from_payload(payload)
    product = _resolve_product(item)

    line = _build_item(item, product)
    report.items.append(line)
    db.session.flush()

    log_action(line, "CREATE", before=None, after=serialize_model(line))
    logger.info(
        "Report %s: added %s %s of %s (%s qq, %s)",
        report.ticket_number, line.weight, line.weight_unit, product.name,
        line.weight_in_quintals, line.base_price,
    )
    return report


def remove_item(report_id: Any, item_id: Any) -> Report:
    report = get_report(report_id, lock=True)
    lifecycle.ensure_items_mutable(report.state)

    iid = parse_optional_int(item_id)
    line = next((i for i in report.items if i.id == iid), None)
    if line is None:
        raise NotFoundError(f"Item {item_id} not found on report {report.ticket_number}.")

    before = serialize_model(line)
    report.items.remove(line)
    db.session.flush()

    log_action(line, "DELETE", before=before, after=None)
    logger.info("Report %s: removed item %s", report.ticket_number, iid)
    return report


def finish_report(report_id: Any, payload: Mapping[str, Any]) -> Report:
    """PENDING -> APPROVED, freezing weights and prices."""
    report = get_report(report_id, lock=True)
    extra_percentage = get_config().extra_percentage

    result = lifecycle.finish(
        report.state,
        report.gross_weight,
        payload.get("tareWeight"),
        [line.base_price for line in report.items],
        extra_percentage,
    )

    before = serialize_model(report)
    report.tare_weight = result.tare_weight
    report.net_weight = result.net_weight
    report.extra_percentage = result.extra_percentage
    report.base_price = result.base_price
    report.total_price = result.total_price
    report.state = result.state.value
    db.session.flush()

    action = lifecycle.transition_action(before["state"], report.state)
    log_action(report, action, before=before, after=serialize_model(report))

    tolerance = current_app.config.get("WEIGHT_DIVERGENCE_TOLERANCE", lifecycle.DEFAULT_DIVERGENCE_TOLERANCE)
    accumulated = report.accumulated_quintals()
    if lifecycle.is_divergent(report.gross_weight, report.tare_weight, accumulated, tolerance):
        logger.info(
            "Report %s finished with net %s qq vs %s qq in items",
            report.ticket_number, report.net_weight, round_weight(accumulated),
        )
    logger.info("Report %s approved, total %s", report.ticket_number, report.total_price)
    return report


def cancel_report(report_id: Any) -> Report:
    """PENDING -> CANCELLED. Items are kept for audit."""
    report = get_report(report_id, lock=True)
    new_state = lifecycle.cancel(report.state)

    before = serialize_model(report)
    report.state = new_state.value
    db.session.flush()

    action = lifecycle.transition_action(before["state"], report.state)
    log_action(report, action, before=before, after=serialize_model(report))
    logger.info("Report %s cancelled", report.ticket_number)
    return report


# ---------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------
def _parse_date_arg(value: Any) -> date | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).strip()[:10]).date()
    except ValueError:
        return None


@dataclass(frozen=True)
class ReportFilters:
    start_date: date | None = None
    end_date: date | None = None
    supplier_id: int | None = None
    product_id: int | None = None
    search: str = ""
    state: str | None = None

    @classmethod
    def from_args(cls, args: Mapping[str, Any]) -> "ReportFilters":
        state = (args.get("state") or "").strip().upper() or None
        if state and state not in {s.value for s in ReportState}:
            raise ValidationError.for_fields({"state": "Unknown report state."})
        return cls(
            start_date=_parse_date_arg(args.get("startDate")),
            end_date=_parse_date_arg(args.get("endDate")),
            supplier_id=parse_optional_int(args.get("supplierId")),
            product_id=parse_optional_int(args.get("productId")),
            search=(args.get("search") or "").strip(),
            state=state,
        )

    def apply(self, q):
        if self.start_date:
            q = q.filter(Report.report_date >= self.start_date)
        if self.end_date:
            q = q.filter(Report.report_date <= self.end_date)
        if self.supplier_id:
            q = q.filter(Report.supplier_id == self.supplier_id)
        if self.product_id:
            q = q.filter(Report.items.any(ReportItem.product_id == self.product_id))
        if self.search:
            like = f"%{self.search}%"
            q = q.filter(or_(Report.ticket_number.ilike(like), Report.plate_number.ilike(like)))
        if self.state:
            q = q.filter(Report.state == self.state)
        return q


def reports_query(filters: ReportFilters):
    """Filtered reports, newest first, with supplier/user/items eager loaded."""
    q = filters.apply(Report.query)
    return q.options(
        selectinload(Report.supplier),
        selectinload(Report.user),
        selectinload(Report.items).selectinload(ReportItem.product),
    ).order_by(Report.report_date.desc(), Report.id.desc())


def summarize(reports: list[Report], today: date | None = None) -> dict:
    """Dashboard figures. Money and net weight only count APPROVED reports."""
    today = today or utcnow().date()
    approved = [r for r in reports if r.state == ReportState.APPROVED.value]

    by_product: dict[str, dict[str, Decimal]] = {}
    for report in approved:
        for line in report.items:
            name = line.product.name if line.product else "Otros"
            bucket = by_product.setdefault(name, {"weight": Decimal("0"), "amount": Decimal("0")})
            bucket["weight"] += to_decimal(line.weight_in_quintals)
            bucket["amount"] += to_decimal(line.base_price)

    return {
        "reportCount": len(reports),
        "approvedCount": len(approved),
        "pendingCount": sum(1 for r in reports if r.state == ReportState.PENDING.value),
        "cancelledCount": sum(1 for r in reports if r.state == ReportState.CANCELLED.value),
        "todayCount": sum(1 for r in reports if r.report_date == today),
        "totalNetWeight": float(round_weight(sum((to_decimal(r.net_weight) for r in approved), Decimal("0")))),
        "totalAmount": float(round_money(sum((to_decimal(r.total_price) for r in approved), Decimal("0")))),
        "byProduct": [
            {
                "product": name,
                "weightInQuintals": float(round_weight(values["weight"])),
                "amount": float(round_money(values["amount"])),
            }
            for name, values in sorted(by_product.items())
        ],
    }
