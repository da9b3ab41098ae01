"""
Report Item Accumulator.

Client-side view of the items of one PENDING report. Every mutation goes
through the Report Service and the local state is then replaced wholesale by
the report the server returns, so the server stays the single source of truth
for prices and quintal conversions.

On any failure the local state is left untouched and the error propagates.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from ..pricing import lifecycle
from ..pricing.errors import ValidationError
from ..pricing.lifecycle import ItemInput, ReportState, parse_decimal
from ..pricing.units import round_money, round_weight
from ..utils import parse_optional_int
from .service import ReportService

logger = logging.getLogger(__name__)


def _decimal(value: Any) -> Decimal:
    parsed = parse_decimal(value)
    return parsed if parsed is not None else Decimal("0")


@dataclass(frozen=True)
class AccumulatedItem:
    """One priced line as last reported by the server."""
    id: int
    product_id: int
    product_name: str
    weight: Decimal
    weight_unit: str
    weight_in_quintals: Decimal
    price_per_quintal: Decimal
    base_price: Decimal
    discount_weight: Optional[Decimal] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AccumulatedItem":
        product = data.get("product") or {}
        discount = data.get("discountWeight")
        return cls(
            id=data["id"],
            product_id=data.get("productId"),
            product_name=product.get("name", ""),
            weight=_decimal(data.get("weight")),
            weight_unit=data.get("weightUnit", ""),
            weight_in_quintals=_decimal(data.get("weightInQuintals")),
            price_per_quintal=_decimal(data.get("pricePerQuintal")),
            base_price=_decimal(data.get("basePrice")),
            discount_weight=_decimal(discount) if discount is not None else None,
        )


class ReportItemAccumulator:
    """
    Items of one report.

    Usage:
        acc = ReportItemAccumulator(service, created_report)
        await acc.add_item(product_id, "25", "pounds")
        acc.remaining_quintals()
    """

    def __init__(self, service: ReportService, report: Dict[str, Any]):
        self.service = service
        self.report_id: int = report["id"]
        self.state = ReportState.PENDING
        self.gross_weight = Decimal("0")
        self.items: Tuple[AccumulatedItem, ...] = ()
        self.last_report: Dict[str, Any] = {}
        self.apply_snapshot(report)

    # ------------------------------------------------------------------
    # Reducer
    # ------------------------------------------------------------------
    def apply_snapshot(self, report: Dict[str, Any]) -> None:
        """Replace local items, state and gross weight with a server report."""
        if report.get("id") != self.report_id:
            raise ValidationError(f"Snapshot of report {report.get('id')} applied to report {self.report_id}.")

        items = tuple(AccumulatedItem.from_dict(raw) for raw in report.get("items") or [])
        self.state = ReportState(report.get("state", ReportState.PENDING.value))
        self.gross_weight = _decimal(report.get("grossWeight"))
        self.items = items
        self.last_report = report

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    async def add_item(self, product_id, weight, unit, discount_weight=None) -> List[AccumulatedItem]:
        lifecycle.ensure_items_mutable(self.state)
        payload = {"productId": product_id, "weight": weight, "weightUnit": unit}
        if discount_weight is not None:
            payload["discountWeight"] = discount_weight
        item = ItemInput.from_payload(payload)

        report = await self.service.add_report_item(self.report_id, item.to_payload())
        self.apply_snapshot(report)
        logger.debug("Report %s now has %d items", self.report_id, len(self.items))
        return list(self.items)

    async def remove_item(self, item_id) -> List[AccumulatedItem]:
        lifecycle.ensure_items_mutable(self.state)
        raw_id, item_id = item_id, parse_optional_int(item_id)
        if item_id is None or not any(item.id == item_id for item in self.items):
            raise ValidationError.for_fields({"itemId": f"Item {raw_id} is not on this report."})

        report = await self.service.remove_report_item(self.report_id, item_id)
        self.apply_snapshot(report)
        logger.debug("Report %s now has %d items", self.report_id, len(self.items))
        return list(self.items)

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------
    def total_accumulated_quintals(self) -> Decimal:
        return round_weight(sum((item.weight_in_quintals for item in self.items), Decimal("0")))

    def remaining_quintals(self) -> Decimal:
        """Gross weight minus accumulated quintals. Negative when over capacity."""
        return round_weight(self.gross_weight - self.total_accumulated_quintals())

    def is_over_capacity(self) -> bool:
        return self.total_accumulated_quintals() > self.gross_weight

    def total_base_price(self) -> Decimal:
        return round_money(sum((item.base_price for item in self.items), Decimal("0")))
