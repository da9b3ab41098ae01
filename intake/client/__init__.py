"""
intake/client

Client-side core of the intake dashboard: the Report Service client, the item
accumulator and the three-step report wizard.
"""

from .accumulator import AccumulatedItem, ReportItemAccumulator  # noqa: F401
from .service import HttpReportService, ReportService  # noqa: F401
from .wizard import AbandonPolicy, ReportWizard, WizardError, WizardStep  # noqa: F401
