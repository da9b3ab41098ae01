"""
intake/pricing

Report lifecycle and pricing engine: unit conversion, price computation and
the report state machine. No Flask or database imports in this package.
"""

from .calculator import PriceBreakdown, ReportTotals, price, price_item, report_totals  # noqa: F401
from .errors import (  # noqa: F401
    IntakeError,
    NotFoundError,
    ServiceUnavailableError,
    StateConflictError,
    ValidationError,
    WizardBusyError,
)
from .lifecycle import ItemInput, ReportHeader, ReportState  # noqa: F401
from .units import WeightUnit, to_quintals, unit_label  # noqa: F401
