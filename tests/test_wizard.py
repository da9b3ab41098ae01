import asyncio
from decimal import Decimal

import pytest

from intake.client.wizard import AbandonPolicy, ReportWizard, WizardStep
from intake.pricing.errors import (
    ServiceUnavailableError,
    StateConflictError,
    ValidationError,
    WizardBusyError,
)

from conftest import FAKE_CARDBOARD_ID, FAKE_COPPER_ID


@pytest.fixture
def wizard(fake_service):
    return ReportWizard(fake_service)


def _start(wizard, header):
    asyncio.run(wizard.create(header))
    return wizard.report_id


class TestHappyPath:

    def test_full_flow(self, wizard, fake_service, fake_header):
        async def scenario():
            await wizard.create(fake_header)
            assert wizard.step is WizardStep.ITEMS
            await wizard.add_item(FAKE_COPPER_ID, 1000, "pounds")
            wizard.go_to_finish()
            return await wizard.finish(10)

        report = asyncio.run(scenario())

        assert report["state"] == "APPROVED"
        assert report["netWeight"] == 40.0
        assert report["basePrice"] == 1000.0
        assert report["totalPrice"] == 1100.0
        assert wizard.step is WizardStep.CREATE
        assert wizard.report_id is None
        assert wizard.last_report is report
        assert fake_service.calls == ["create_report", "add_report_item", "finish_report"]

    def test_back_and_forth_between_items_and_finish(self, wizard, fake_header):
        _start(wizard, fake_header)
        wizard.go_to_finish()
        wizard.back_to_items()
        assert wizard.step is WizardStep.ITEMS
        with pytest.raises(StateConflictError):
            wizard.back_to_items()

    def test_previews(self, wizard, fake_header):
        _start(wizard, fake_header)
        asyncio.run(wizard.add_item(FAKE_CARDBOARD_ID, 38, "quintals"))

        assert wizard.net_weight_preview("10") == Decimal("40.0000")
        assert wizard.net_weight_preview("") is None
        assert wizard.divergence_warning(10) is None
        assert "differs" in wizard.divergence_warning(2)


class TestValidation:

    def test_invalid_header_is_not_sent(self, wizard, fake_service):
        with pytest.raises(ValidationError):
            asyncio.run(wizard.create({"supplierId": 1, "plateNumber": "", "driverName": "Ana", "grossWeight": 5}))

        assert fake_service.calls == []
        assert wizard.step is WizardStep.CREATE
        assert wizard.last_error.kind == "validation"
        assert "plateNumber" in wizard.last_error.errors

    def test_tare_not_below_gross_is_rejected_before_network(self, wizard, fake_service, fake_header):
        _start(wizard, fake_header)
        wizard.go_to_finish()
        fake_service.calls.clear()

        with pytest.raises(ValidationError):
            asyncio.run(wizard.finish(60))

        assert fake_service.calls == []
        assert wizard.step is WizardStep.FINISH
        assert wizard.report_id is not None
        assert wizard.last_error.errors == {"tareWeight": "Tare weight must be less than the gross weight."}

    def test_finish_only_from_finish_step(self, wizard, fake_header):
        _start(wizard, fake_header)
        with pytest.raises(StateConflictError):
            asyncio.run(wizard.finish(10))


class TestFailures:

    def test_transient_error_keeps_state_and_can_retry(self, wizard, fake_service, fake_header):
        _start(wizard, fake_header)
        fake_service.fail_next = ServiceUnavailableError("offline")

        with pytest.raises(ServiceUnavailableError):
            asyncio.run(wizard.add_item(FAKE_COPPER_ID, 5, "quintals"))

        assert wizard.items == []
        assert wizard.busy is False
        assert wizard.last_error.kind == "transient"

        asyncio.run(wizard.add_item(FAKE_COPPER_ID, 5, "quintals"))
        assert len(wizard.items) == 1
        assert wizard.last_error is None

    def test_second_finish_is_a_conflict(self, fake_service, fake_header):
        wizard = ReportWizard(fake_service)
        _start(wizard, fake_header)
        report_id = wizard.report_id
        wizard.go_to_finish()
        first = asyncio.run(wizard.finish(10))

        with pytest.raises(StateConflictError):
            asyncio.run(fake_service.finish_report(report_id, 5))
        assert fake_service.reports[report_id]["totalPrice"] == first["totalPrice"]


class TestGuards:

    def test_busy_guard(self, wizard, fake_service, fake_header):
        _start(wizard, fake_header)

        async def scenario():
            fake_service.gate = asyncio.Event()
            task = asyncio.create_task(wizard.add_item(FAKE_COPPER_ID, 5, "quintals"))
            await asyncio.sleep(0)
            assert wizard.busy

            with pytest.raises(WizardBusyError):
                await wizard.add_item(FAKE_COPPER_ID, 1, "quintals")
            with pytest.raises(WizardBusyError):
                wizard.go_to_finish()

            fake_service.gate.set()
            return await task

        items = asyncio.run(scenario())
        assert len(items) == 1
        assert wizard.busy is False
        assert fake_service.calls.count("add_report_item") == 1

    def test_response_after_reset_is_discarded(self, wizard, fake_service, fake_header):
        async def scenario():
            fake_service.gate = asyncio.Event()
            task = asyncio.create_task(wizard.create(fake_header))
            await asyncio.sleep(0)
            await wizard.close()
            fake_service.gate.set()
            return await task

        assert asyncio.run(scenario()) is None
        assert wizard.step is WizardStep.CREATE
        assert wizard.report_id is None
        assert wizard.busy is False
        # The report exists server-side but the wizard no longer tracks it.
        assert len(fake_service.reports) == 1

    def test_error_after_reset_is_discarded(self, wizard, fake_service, fake_header):
        async def scenario():
            fake_service.gate = asyncio.Event()
            fake_service.fail_next = ServiceUnavailableError("boom")
            task = asyncio.create_task(wizard.create(fake_header))
            await asyncio.sleep(0)
            await wizard.close()
            fake_service.gate.set()
            return await task

        assert asyncio.run(scenario()) is None
        assert wizard.step is WizardStep.CREATE
        assert wizard.last_error is None
        assert wizard.busy is False
        assert fake_service.reports == {}


class TestClose:

    def test_keep_policy_leaves_pending_report(self, wizard, fake_service, fake_header):
        report_id = _start(wizard, fake_header)
        asyncio.run(wizard.close())

        assert wizard.step is WizardStep.CREATE
        assert fake_service.reports[report_id]["state"] == "PENDING"
        assert "cancel_report" not in fake_service.calls

    def test_cancel_policy_cancels_pending_report(self, fake_service, fake_header):
        wizard = ReportWizard(fake_service, abandon_policy=AbandonPolicy.CANCEL)
        report_id = _start(wizard, fake_header)

        asyncio.run(wizard.close())

        assert fake_service.reports[report_id]["state"] == "CANCELLED"
        assert wizard.last_report["state"] == "CANCELLED"
        assert wizard.report_id is None

    def test_close_without_report_makes_no_call(self, fake_service):
        wizard = ReportWizard(fake_service, abandon_policy=AbandonPolicy.CANCEL)
        asyncio.run(wizard.close())
        assert fake_service.calls == []
