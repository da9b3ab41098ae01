"""HttpReportService against the real Flask app through an httpx MockTransport."""
import asyncio

import httpx
import pytest

from intake.client.service import HttpReportService
from intake.client.wizard import ReportWizard
from intake.pricing.errors import (
    IntakeError,
    NotFoundError,
    ServiceUnavailableError,
    StateConflictError,
    ValidationError,
)

from conftest import STAFF_EMAIL, PASSWORD


def flask_transport(flask_client):
    """Route httpx requests into a Flask test client (which keeps the session cookie)."""
    def handler(request: httpx.Request) -> httpx.Response:
        headers = {k: v for k, v in request.headers.items() if k.lower() in ("content-type", "accept", "x-csrftoken")}
        response = flask_client.open(
            request.url.raw_path.decode(),
            method=request.method,
            data=request.content,
            headers=headers,
        )
        return httpx.Response(
            response.status_code,
            content=response.get_data(),
            headers={"content-type": response.content_type},
        )

    return httpx.MockTransport(handler)


def run(transport, scenario):
    async def main():
        async with httpx.AsyncClient(base_url="http://testserver", transport=transport) as http:
            return await scenario(HttpReportService(client=http))

    return asyncio.run(main())


@pytest.fixture
def transport(app, seed):
    return flask_transport(app.test_client())


def _login(service):
    return service.login(STAFF_EMAIL, PASSWORD)


class TestReportLifecycleOverHttp:

    def test_finish_flow_and_second_finish(self, transport, header, seed):
        async def scenario(service):
            await _login(service)
            report = await service.create_report(header)
            report = await service.add_report_item(
                report["id"], {"productId": seed["copper_id"], "weight": 1000, "weightUnit": "pounds"}
            )
            assert report["items"][0]["weightInQuintals"] == 10.0
            finished = await service.finish_report(report["id"], 10)
            with pytest.raises(StateConflictError):
                await service.finish_report(report["id"], 10)
            again = await service.get_report(report["id"])
            return finished, again

        finished, again = run(transport, scenario)

        assert finished["state"] == "APPROVED"
        assert finished["netWeight"] == 40.0
        assert finished["basePrice"] == 1000.0
        assert finished["totalPrice"] == 1100.0
        assert again["totalPrice"] == finished["totalPrice"]

    def test_cancel_then_add_is_a_conflict(self, transport, header, seed):
        async def scenario(service):
            await _login(service)
            report = await service.create_report(header)
            for product_id in (seed["copper_id"], seed["cardboard_id"]):
                report = await service.add_report_item(
                    report["id"], {"productId": product_id, "weight": 2, "weightUnit": "quintals"}
                )
            cancelled = await service.cancel_report(report["id"])
            with pytest.raises(StateConflictError):
                await service.add_report_item(
                    report["id"], {"productId": seed["copper_id"], "weight": 1, "weightUnit": "quintals"}
                )
            return cancelled

        cancelled = run(transport, scenario)
        assert cancelled["state"] == "CANCELLED"
        assert len(cancelled["items"]) == 2

    def test_error_mapping(self, transport, header):
        async def scenario(service):
            await _login(service)
            with pytest.raises(NotFoundError):
                await service.get_report(9999)
            with pytest.raises(ValidationError) as exc:
                await service.create_report({**header, "grossWeight": 0})
            return exc.value

        error = run(transport, scenario)
        assert error.errors == {"grossWeight": "Gross weight must be greater than 0."}

    def test_unauthenticated(self, transport, header):
        async def scenario(service):
            with pytest.raises(IntakeError) as exc:
                await service.create_report(header)
            return exc.value

        error = run(transport, scenario)
        assert error.message == "Authentication required"
        assert not error.retryable

    def test_config(self, transport):
        async def scenario(service):
            await _login(service)
            return await service.get_config()

        assert run(transport, scenario)["extraPercentage"] == 10.0

    def test_wizard_end_to_end(self, transport, header, seed):
        async def scenario(service):
            await _login(service)
            wizard = ReportWizard(service)
            await wizard.create(header)
            await wizard.add_item(seed["copper_id"], 250, "pounds")
            wizard.go_to_finish()
            with pytest.raises(ValidationError):
                await wizard.finish(50)
            return await wizard.finish("5")

        report = run(transport, scenario)
        assert report["state"] == "APPROVED"
        assert report["plateNumber"] == "P-123ABC"
        assert report["netWeight"] == 45.0
        assert report["totalPrice"] == 275.0


class TestTransportFailures:

    def test_server_error_is_transient(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(502, text="Bad gateway"))

        async def scenario(service):
            with pytest.raises(ServiceUnavailableError) as exc:
                await service.cancel_report(1)
            return exc.value

        assert run(transport, scenario).retryable

    def test_connection_error_is_transient(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async def scenario(service):
            with pytest.raises(ServiceUnavailableError):
                await service.get_config()

        run(httpx.MockTransport(handler), scenario)

    def test_kind_wins_over_status(self):
        transport = httpx.MockTransport(
            lambda request: httpx.Response(409, json={"message": "Busy", "kind": "busy"})
        )

        async def scenario(service):
            with pytest.raises(IntakeError) as exc:
                await service.get_config()
            return exc.value

        assert run(transport, scenario).kind == "busy"
