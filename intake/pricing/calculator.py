"""
intake/pricing/calculator.py

Price computation for a single line item and for a whole report.

Formula:
  weightInQuintals = toQuintals(weight, unit)          (4 dp)
  basePrice        = pricePerQuintal * weightInQuintals (2 dp)
  surcharge        = basePrice * surchargePercent / 100 (2 dp)
  total            = basePrice + surcharge              (2 dp)

All functions are pure.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from .units import round_money, to_decimal, to_quintals


@dataclass(frozen=True)
class PriceBreakdown:
    base_price: Decimal
    surcharge: Decimal
    total: Decimal
    weight_in_quintals: Decimal

    def to_dict(self) -> dict:
        return {
            "basePrice": float(self.base_price),
            "surcharge": float(self.surcharge),
            "total": float(self.total),
            "weightInQuintals": float(self.weight_in_quintals),
        }


@dataclass(frozen=True)
class ReportTotals:
    base_price: Decimal
    surcharge: Decimal
    total: Decimal


def surcharge_for(base_price, surcharge_percent) -> Decimal:
    return round_money(to_decimal(base_price) * to_decimal(surcharge_percent) / Decimal("100"))


def price_item(price_per_quintal, weight, unit) -> tuple[Decimal, Decimal]:
    """Return (weight_in_quintals, base_price) as persisted on a report item."""
    weight_in_quintals = to_quintals(weight, unit)
    base_price = round_money(to_decimal(price_per_quintal) * weight_in_quintals)
    return weight_in_quintals, base_price


def price(price_per_quintal, weight, unit, surcharge_percent) -> PriceBreakdown:
    """Full price breakdown for one line item."""
    weight_in_quintals, base_price = price_item(price_per_quintal, weight, unit)
    surcharge = surcharge_for(base_price, surcharge_percent)
    return PriceBreakdown(
        base_price=base_price,
        surcharge=surcharge,
        total=round_money(base_price + surcharge),
        weight_in_quintals=weight_in_quintals,
    )


def report_totals(item_base_prices: Iterable, surcharge_percent) -> ReportTotals:
    """Report base price is the sum of item base prices; the surcharge applies on top."""
    base_price = round_money(sum((to_decimal(p) for p in item_base_prices), Decimal("0")))
    surcharge = surcharge_for(base_price, surcharge_percent)
    return ReportTotals(
        base_price=base_price,
        surcharge=surcharge,
        total=round_money(base_price + surcharge),
    )
