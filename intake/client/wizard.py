"""
Report Wizard Orchestrator.

Drives the three-step intake flow against a Report Service:

    CREATE  --create()-->  ITEMS  --go_to_finish()-->  FINISH
                             ^                            |
                             +------back_to_items()-------+

`finish()` on success and `close()` reset the wizard back to CREATE. Once the
header is persisted there is no way back to CREATE other than a reset.

Guards:
- busy: one call in flight per wizard, any other submit raises WizardBusyError.
- stale responses: every reset bumps `generation`; a response or an error
  that arrives after a reset is dropped (the call returns None and no state
  changes).

Errors are recorded in `last_error` and re-raised. Local state is never
changed by a failed call, so form values held by the caller stay valid.
"""
import enum
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, TypeVar

from ..pricing import lifecycle
from ..pricing.errors import IntakeError, StateConflictError, WizardBusyError
from ..pricing.lifecycle import ReportHeader, ReportState, parse_decimal
from ..pricing.units import round_weight
from .accumulator import AccumulatedItem, ReportItemAccumulator
from .service import ReportService

logger = logging.getLogger(__name__)

T = TypeVar("T")


class WizardStep(str, enum.Enum):
    CREATE = "create"
    ITEMS = "items"
    FINISH = "finish"


class AbandonPolicy(str, enum.Enum):
    """What close() does with a persisted PENDING report."""
    KEEP = "keep"
    CANCEL = "cancel"


@dataclass(frozen=True)
class WizardError:
    message: str
    kind: str
    errors: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_exception(cls, error: IntakeError) -> "WizardError":
        return cls(message=error.message, kind=error.kind, errors=dict(error.errors))


class ReportWizard:
    """
    Usage:
        wizard = ReportWizard(service)
        await wizard.create({"supplierId": 1, "plateNumber": "P-1", ...})
        await wizard.add_item(product_id, 50, "quintals")
        wizard.go_to_finish()
        report = await wizard.finish(5)
    """

    def __init__(
        self,
        service: ReportService,
        *,
        abandon_policy: AbandonPolicy = AbandonPolicy.KEEP,
        divergence_tolerance=lifecycle.DEFAULT_DIVERGENCE_TOLERANCE,
    ):
        self.service = service
        self.abandon_policy = abandon_policy
        self.divergence_tolerance = Decimal(str(divergence_tolerance))

        self.generation = 0
        self.busy = False
        self.last_error: Optional[WizardError] = None
        self.last_report: Optional[Dict[str, Any]] = None

        self.step = WizardStep.CREATE
        self.accumulator: Optional[ReportItemAccumulator] = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def report_id(self) -> Optional[int]:
        return self.accumulator.report_id if self.accumulator else None

    @property
    def gross_weight(self) -> Optional[Decimal]:
        return self.accumulator.gross_weight if self.accumulator else None

    @property
    def items(self) -> List[AccumulatedItem]:
        return list(self.accumulator.items) if self.accumulator else []

    def _reset(self) -> None:
        self.generation += 1
        self.busy = False
        self.step = WizardStep.CREATE
        self.accumulator = None

    def _require_step(self, *steps: WizardStep) -> None:
        if self.busy:
            raise WizardBusyError("Another operation is still in progress.")
        if self.step not in steps:
            allowed = ", ".join(s.value for s in steps)
            raise StateConflictError(f"Not available in step {self.step.value} (expected {allowed}).")

    async def _call(self, operation: Callable[[], Awaitable[T]]) -> Tuple[bool, Optional[T]]:
        """
        Run one guarded call. Returns (current, result); `current` is False when
        the wizard was reset while the call was in flight.
        """
        if self.busy:
            raise WizardBusyError("Another operation is still in progress.")

        generation = self.generation
        self.busy = True
        self.last_error = None
        try:
            result = await operation()
        except IntakeError as e:
            if generation != self.generation:
                logger.info("Discarding %s error that arrived after a wizard reset", e.kind)
                return False, None
            self.last_error = WizardError.from_exception(e)
            raise
        finally:
            if generation == self.generation:
                self.busy = False

        if generation != self.generation:
            logger.info("Discarding response that arrived after a wizard reset")
            return False, None
        return True, result

    # ------------------------------------------------------------------
    # Step 1: header
    # ------------------------------------------------------------------
    async def create(self, header) -> Optional[Dict[str, Any]]:
        """Validate the header, create the PENDING report and move to ITEMS."""
        self._require_step(WizardStep.CREATE)

        async def operation():
            parsed = header if isinstance(header, ReportHeader) else lifecycle.validate_header(header)
            return await self.service.create_report(parsed.to_payload())

        current, report = await self._call(operation)
        if not current:
            return None

        self.accumulator = ReportItemAccumulator(self.service, report)
        self.step = WizardStep.ITEMS
        logger.info("Wizard created report %s", report.get("ticketNumber") or report["id"])
        return report

    # ------------------------------------------------------------------
    # Step 2: items
    # ------------------------------------------------------------------
    async def add_item(self, product_id, weight, unit, discount_weight=None) -> Optional[List[AccumulatedItem]]:
        self._require_step(WizardStep.ITEMS)
        accumulator = self.accumulator
        current, items = await self._call(
            lambda: accumulator.add_item(product_id, weight, unit, discount_weight)
        )
        return items if current else None

    async def remove_item(self, item_id) -> Optional[List[AccumulatedItem]]:
        self._require_step(WizardStep.ITEMS)
        accumulator = self.accumulator
        current, items = await self._call(lambda: accumulator.remove_item(item_id))
        return items if current else None

    def go_to_finish(self) -> None:
        self._require_step(WizardStep.ITEMS)
        self.step = WizardStep.FINISH

    def back_to_items(self) -> None:
        self._require_step(WizardStep.FINISH)
        self.step = WizardStep.ITEMS

    # ------------------------------------------------------------------
    # Step 3: finish
    # ------------------------------------------------------------------
    async def finish(self, tare_weight) -> Optional[Dict[str, Any]]:
        """Validate 0 < tare < gross, approve the report and reset the wizard."""
        self._require_step(WizardStep.FINISH)
        report_id = self.report_id
        gross_weight = self.gross_weight

        async def operation():
            tare = lifecycle.validate_finish(gross_weight, tare_weight)
            return await self.service.finish_report(report_id, float(tare))

        current, report = await self._call(operation)
        if not current:
            return None

        self.last_report = report
        self._reset()
        logger.info("Wizard finished report %s", report.get("ticketNumber") or report_id)
        return report

    def net_weight_preview(self, tare_weight) -> Optional[Decimal]:
        """gross - tare, or None while the tare is not a number."""
        tare = parse_decimal(tare_weight)
        if tare is None or self.gross_weight is None:
            return None
        return round_weight(self.gross_weight - tare)

    def divergence_warning(self, tare_weight) -> Optional[str]:
        """Advisory message when net weight and item weights differ by more than the tolerance."""
        tare = parse_decimal(tare_weight)
        if tare is None or self.accumulator is None:
            return None
        accumulated = self.accumulator.total_accumulated_quintals()
        if not lifecycle.is_divergent(self.gross_weight, tare, accumulated, self.divergence_tolerance):
            return None
        net = round_weight(self.gross_weight - tare)
        return f"Net weight {net} qq differs from the {accumulated} qq registered in items."

    # ------------------------------------------------------------------
    # Close
    # ------------------------------------------------------------------
    async def close(self) -> None:
        """
        Reset the wizard. With AbandonPolicy.CANCEL a persisted PENDING report
        is cancelled after the reset; an error from that call propagates.
        """
        report_id = self.report_id
        pending = self.accumulator is not None and self.accumulator.state is ReportState.PENDING
        self._reset()
        self.last_error = None

        if report_id is None or not pending:
            return
        if self.abandon_policy is AbandonPolicy.KEEP:
            logger.info("Wizard closed, report %s left PENDING", report_id)
            return

        report = await self.service.cancel_report(report_id)
        self.last_report = report
        logger.info("Wizard closed, report %s cancelled", report_id)
