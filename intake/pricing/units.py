"""
intake/pricing/units.py

Weight units and conversion to quintals (the canonical pricing unit).

Conversion table (quintals per unit):
- quintals  : 1
- pounds    : 0.01      (1 qq = 100 lb)
- kilograms : 0.022046
- tons      : 22.046    (metric ton, 1000 kg)

IMPORTANT:
- Quintal weights are rounded HALF-UP to 4 decimals.
- Money is rounded HALF-UP to 2 decimals.
- An unknown unit converts with factor 1 (treated as quintals) and logs a
  warning. It never raises.
"""

from __future__ import annotations

import enum
import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

logger = logging.getLogger(__name__)

MONEY_QUANTUM = Decimal("0.01")
WEIGHT_QUANTUM = Decimal("0.0001")


class WeightUnit(str, enum.Enum):
    """Weight units accepted on the wire."""

    QUINTALS = "quintals"
    POUNDS = "pounds"
    KILOGRAMS = "kilograms"
    TONS = "tons"


QUINTALS_PER_UNIT: dict[WeightUnit, Decimal] = {
    WeightUnit.QUINTALS: Decimal("1"),
    WeightUnit.POUNDS: Decimal("0.01"),
    WeightUnit.KILOGRAMS: Decimal("0.022046"),
    WeightUnit.TONS: Decimal("22.046"),
}

UNIT_LABELS: dict[WeightUnit, str] = {
    WeightUnit.QUINTALS: "Quintales",
    WeightUnit.POUNDS: "Libras",
    WeightUnit.KILOGRAMS: "Kilogramos",
    WeightUnit.TONS: "Toneladas",
}

UNIT_CHOICES = [(unit.value, UNIT_LABELS[unit]) for unit in WeightUnit]


# ---------------------------------------------------------------------
# Decimal helpers
# ---------------------------------------------------------------------
def to_decimal(value) -> Decimal:
    """Convert int/float/str/Decimal/None to Decimal (None -> 0)."""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"Not a number: {value!r}") from exc


def round_money(value) -> Decimal:
    return to_decimal(value).quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def round_weight(value) -> Decimal:
    return to_decimal(value).quantize(WEIGHT_QUANTUM, rounding=ROUND_HALF_UP)


# ---------------------------------------------------------------------
# Units
# ---------------------------------------------------------------------
def parse_unit(unit) -> WeightUnit | None:
    """Return the WeightUnit for an enum member or its string value, else None."""
    if isinstance(unit, WeightUnit):
        return unit
    try:
        return WeightUnit(str(unit).strip().lower())
    except ValueError:
        return None


def quintal_factor(unit) -> Decimal:
    """Quintals per one `unit`. Unknown units fall back to 1."""
    parsed = parse_unit(unit)
    if parsed is None:
        logger.warning("Unknown weight unit %r, converting with factor 1", unit)
        return Decimal("1")
    return QUINTALS_PER_UNIT[parsed]


def to_quintals(weight, unit) -> Decimal:
    """Convert `weight` expressed in `unit` to quintals (4 decimals)."""
    return round_weight(to_decimal(weight) * quintal_factor(unit))


def unit_label(unit) -> str:
    parsed = parse_unit(unit)
    if parsed is None:
        return str(unit)
    return UNIT_LABELS[parsed]
