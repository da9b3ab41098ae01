"""
intake/pricing/lifecycle.py

Report lifecycle state machine. This module is the single source of truth for
report state transitions and for the input rules of each transition.

States:
  PENDING  (initial)  -> APPROVED   (finish, terminal)
                      -> CANCELLED  (cancel, terminal)

There is no re-open / un-cancel path.

The functions here are pure: the caller passes in the current state and the
values a transition needs (including the surcharge percentage snapshot) and
receives the values to persist. Persistence lives in intake/services/reports.py.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping

from .calculator import report_totals
from .errors import StateConflictError, ValidationError
from .units import WeightUnit, parse_unit, round_money, round_weight

logger = logging.getLogger(__name__)

DEFAULT_DIVERGENCE_TOLERANCE = Decimal("5")
MIN_DRIVER_NAME_LENGTH = 2


class ReportState(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    CANCELLED = "CANCELLED"


REPORT_TRANSITIONS: dict[ReportState, list[ReportState]] = {
    ReportState.PENDING: [ReportState.APPROVED, ReportState.CANCELLED],
    ReportState.APPROVED: [],
    ReportState.CANCELLED: [],
}

TRANSITION_ACTIONS: dict[tuple[ReportState, ReportState], str] = {
    (ReportState.PENDING, ReportState.APPROVED): "FINISH",
    (ReportState.PENDING, ReportState.CANCELLED): "CANCEL",
}


# ---------------------------------------------------------------------
# Transition helpers
# ---------------------------------------------------------------------
def _state(value) -> ReportState:
    return value if isinstance(value, ReportState) else ReportState(str(value))


def can_transition(current, new) -> bool:
    return _state(new) in REPORT_TRANSITIONS.get(_state(current), [])


def is_terminal(state) -> bool:
    return not REPORT_TRANSITIONS.get(_state(state))


def transition_action(current, new) -> str:
    """Audit action name of a transition."""
    current, new = _state(current), _state(new)
    return TRANSITION_ACTIONS.get((current, new), f"{current.value} -> {new.value}")


def validate_transition(current, new) -> None:
    """Raise StateConflictError if `current -> new` is not allowed."""
    current, new = _state(current), _state(new)
    if can_transition(current, new):
        return

    logger.warning("Rejected report transition %s -> %s", current.value, new.value)
    if is_terminal(current):
        raise StateConflictError(
            f"Report is {current.value} and can no longer be modified."
        )
    raise StateConflictError(f"Cannot change report from {current.value} to {new.value}.")


def ensure_items_mutable(state) -> None:
    """Items may be added/removed only while PENDING."""
    state = _state(state)
    if state is not ReportState.PENDING:
        logger.warning("Rejected item mutation on %s report", state.value)
        raise StateConflictError(f"Items cannot be changed on a {state.value} report.")


# ---------------------------------------------------------------------
# Input parsing
# ---------------------------------------------------------------------
def parse_decimal(value: Any) -> Decimal | None:
    """Parse decimal from user input (accepts comma or dot). None for empty/invalid."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    raw = str(value).strip().replace(",", ".")
    if raw == "":
        return None
    try:
        parsed = Decimal(raw)
    except (InvalidOperation, ValueError):
        return None
    if not parsed.is_finite():
        return None
    return parsed


def _parse_date(value: Any) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.fromisoformat(str(value).strip().replace("Z", "+00:00")).date()
    except ValueError:
        return None


def _weight(value: Any) -> Decimal | None:
    """Parsed weight at stored precision; range checks run on this value."""
    parsed = parse_decimal(value)
    return round_weight(parsed) if parsed is not None else None


def _text(value: Any) -> str:
    return str(value).strip() if value is not None else ""


@dataclass(frozen=True)
class ReportHeader:
    supplier_id: str
    plate_number: str
    driver_name: str
    gross_weight: Decimal
    report_date: date | None = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ReportHeader":
        """Validate a createReport header (camelCase keys)."""
        errors: dict[str, str] = {}

        supplier_id = _text(payload.get("supplierId"))
        if not supplier_id:
            errors["supplierId"] = "Supplier is required."

        plate_number = _text(payload.get("plateNumber"))
        if not plate_number:
            errors["plateNumber"] = "Plate number is required."

        driver_name = _text(payload.get("driverName"))
        if len(driver_name) < MIN_DRIVER_NAME_LENGTH:
            errors["driverName"] = "Driver name is required."

        gross_weight = _weight(payload.get("grossWeight"))
        if gross_weight is None or gross_weight <= 0:
            errors["grossWeight"] = "Gross weight must be greater than 0."

        raw_date = payload.get("reportDate")
        report_date = _parse_date(raw_date)
        if raw_date not in (None, "") and report_date is None:
            errors["reportDate"] = "Invalid report date."

        if errors:
            raise ValidationError.for_fields(errors)

        return cls(
            supplier_id=supplier_id,
            plate_number=plate_number.upper(),
            driver_name=driver_name,
            gross_weight=gross_weight,
            report_date=report_date,
        )

    def to_payload(self) -> dict:
        payload = {
            "supplierId": self.supplier_id,
            "plateNumber": self.plate_number,
            "driverName": self.driver_name,
            "grossWeight": float(self.gross_weight),
        }
        if self.report_date:
            payload["reportDate"] = self.report_date.isoformat()
        return payload


@dataclass(frozen=True)
class ItemInput:
    product_id: str
    weight: Decimal
    weight_unit: WeightUnit
    discount_weight: Decimal | None = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ItemInput":
        """Validate an addReportItem body (camelCase keys)."""
        errors: dict[str, str] = {}

        product_id = _text(payload.get("productId"))
        if not product_id:
            errors["productId"] = "Product is required."

        weight = _weight(payload.get("weight"))
        if weight is None or weight <= 0:
            errors["weight"] = "Weight must be greater than 0."

        unit = parse_unit(payload.get("weightUnit", WeightUnit.QUINTALS.value))
        if unit is None:
            errors["weightUnit"] = "Unknown weight unit."

        discount_weight = None
        raw_discount = payload.get("discountWeight")
        if raw_discount not in (None, ""):
            discount_weight = _weight(raw_discount)
            if discount_weight is None or discount_weight < 0:
                errors["discountWeight"] = "Discount weight cannot be negative."

        if errors:
            raise ValidationError.for_fields(errors)

        return cls(
            product_id=product_id,
            weight=weight,
            weight_unit=unit,
            discount_weight=discount_weight,
        )

    def to_payload(self) -> dict:
        payload = {
            "productId": self.product_id,
            "weight": float(self.weight),
            "weightUnit": self.weight_unit.value,
        }
        if self.discount_weight is not None:
            payload["discountWeight"] = float(self.discount_weight)
        return payload


def validate_header(payload: Mapping[str, Any]) -> ReportHeader:
    return ReportHeader.from_payload(payload)


def validate_finish(gross_weight, tare_weight) -> Decimal:
    """0 < tare < gross. Returns the parsed tare weight."""
    tare = _weight(tare_weight)
    gross = _weight(gross_weight) or Decimal("0")
    if tare is None or tare <= 0:
        raise ValidationError.for_fields({"tareWeight": "Tare weight must be greater than 0."})
    if tare >= gross:
        raise ValidationError.for_fields({"tareWeight": "Tare weight must be less than the gross weight."})
    return tare


# ---------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class FinishResult:
    tare_weight: Decimal
    net_weight: Decimal
    extra_percentage: Decimal
    base_price: Decimal
    surcharge: Decimal
    total_price: Decimal
    state: ReportState = ReportState.APPROVED


def finish(state, gross_weight, tare_weight, item_base_prices: Iterable, extra_percentage) -> FinishResult:
    """
    PENDING -> APPROVED.

    `extra_percentage` is the SystemConfig value read once for this finish.
    """
    validate_transition(state, ReportState.APPROVED)
    tare = validate_finish(gross_weight, tare_weight)
    gross = parse_decimal(gross_weight)
    pct = parse_decimal(extra_percentage) or Decimal("0")

    totals = report_totals(item_base_prices, pct)
    return FinishResult(
        tare_weight=tare,
        net_weight=round_weight(gross - tare),
        extra_percentage=round_money(pct),
        base_price=totals.base_price,
        surcharge=totals.surcharge,
        total_price=totals.total,
    )


def cancel(state) -> ReportState:
    """PENDING -> CANCELLED."""
    validate_transition(state, ReportState.CANCELLED)
    return ReportState.CANCELLED


# ---------------------------------------------------------------------
# Advisory checks (never block a transition)
# ---------------------------------------------------------------------
def net_weight_divergence(gross_weight, tare_weight, accumulated_quintals) -> Decimal:
    """|net weight - sum of item weights| in quintals."""
    gross = parse_decimal(gross_weight) or Decimal("0")
    tare = parse_decimal(tare_weight) or Decimal("0")
    accumulated = parse_decimal(accumulated_quintals) or Decimal("0")
    return round_weight(abs((gross - tare) - accumulated))


def is_divergent(gross_weight, tare_weight, accumulated_quintals, tolerance=DEFAULT_DIVERGENCE_TOLERANCE) -> bool:
    return net_weight_divergence(gross_weight, tare_weight, accumulated_quintals) > Decimal(str(tolerance))
