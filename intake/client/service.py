"""
Report Service client.

The accumulator and wizard only talk to a `ReportService`: any object with the
async operations below. `HttpReportService` implements it over the JSON API
with httpx, mapping HTTP failures back onto the intake error taxonomy:

- transport errors and 5xx   -> ServiceUnavailableError (retryable)
- 4xx with a known `kind`    -> the matching IntakeError subclass
- 4xx without a body         -> mapped by status code

Usage:
    async with HttpReportService("http://localhost:5000") as service:
        await service.login("staff@example.com", "secret")
        report = await service.create_report(header.to_payload())
"""
import logging
from typing import Any, Dict, Optional, Protocol

import httpx

from ..pricing.errors import (
    ERRORS_BY_KIND,
    IntakeError,
    NotFoundError,
    ServiceUnavailableError,
    StateConflictError,
    ValidationError,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
CSRF_HEADER = "X-CSRFToken"

ERRORS_BY_STATUS: Dict[int, type] = {
    400: ValidationError,
    404: NotFoundError,
    409: StateConflictError,
    422: ValidationError,
}


class ReportService(Protocol):
    """Operations the client core needs. All return the server's JSON (camelCase)."""

    async def create_report(self, header: Dict[str, Any]) -> Dict[str, Any]: ...

    async def add_report_item(self, report_id: int, item: Dict[str, Any]) -> Dict[str, Any]: ...

    async def remove_report_item(self, report_id: int, item_id: int) -> Dict[str, Any]: ...

    async def finish_report(self, report_id: int, tare_weight: float) -> Dict[str, Any]: ...

    async def cancel_report(self, report_id: int) -> Dict[str, Any]: ...

    async def get_config(self) -> Dict[str, Any]: ...


def error_from_response(response: httpx.Response) -> IntakeError:
    """Build the IntakeError matching a failed response."""
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}

    message = body.get("message") or f"Request failed with status {response.status_code}"
    errors = body.get("errors") if isinstance(body.get("errors"), dict) else None

    if response.status_code >= 500:
        return ServiceUnavailableError(message)

    error_cls = ERRORS_BY_KIND.get(body.get("kind")) or ERRORS_BY_STATUS.get(response.status_code, IntakeError)
    return error_cls(message, errors=errors)


class HttpReportService:
    """
    ReportService over HTTP.

    A caller-supplied `client` is used as is and never closed here, so tests
    can inject an httpx client with a MockTransport.
    """

    def __init__(
        self,
        base_url: str = "",
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self.csrf_token: Optional[str] = None

    async def __aenter__(self) -> "HttpReportService":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        headers = {"Accept": "application/json"}
        if self.csrf_token:
            headers[CSRF_HEADER] = self.csrf_token

        try:
            response = await self.client.request(method, path, json=payload, headers=headers)
        except httpx.RequestError as e:
            logger.warning("Report service unreachable: %s %s (%s)", method, path, e)
            raise ServiceUnavailableError(f"Report service unreachable: {e}") from e

        if response.status_code >= 400:
            error = error_from_response(response)
            log = logger.warning if error.retryable else logger.info
            log("Report service %s %s -> %s %s", method, path, response.status_code, error.kind)
            raise error

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            logger.warning("Report service sent invalid JSON for %s %s", method, path)
            raise ServiceUnavailableError("Invalid response from report service.") from e

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------
    async def login(self, email: str, password: str) -> Dict[str, Any]:
        data = await self._request("POST", "/auth/login", {"email": email, "password": password})
        self.csrf_token = data.get("csrfToken")
        return data["user"]

    async def logout(self) -> None:
        await self._request("POST", "/auth/logout")
        self.csrf_token = None

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------
    async def create_report(self, header: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/reports", header)

    async def get_report(self, report_id: int) -> Dict[str, Any]:
        return await self._request("GET", f"/reports/{report_id}")

    async def add_report_item(self, report_id: int, item: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", f"/reports/{report_id}/items", item)

    async def remove_report_item(self, report_id: int, item_id: int) -> Dict[str, Any]:
        return await self._request("DELETE", f"/reports/{report_id}/items/{item_id}")

    async def finish_report(self, report_id: int, tare_weight: float) -> Dict[str, Any]:
        return await self._request("PATCH", f"/reports/{report_id}/finish", {"tareWeight": tare_weight})

    async def cancel_report(self, report_id: int) -> Dict[str, Any]:
        return await self._request("PATCH", f"/reports/{report_id}/cancel")

    # ------------------------------------------------------------------
    # Config
    # ------------------------------------------------------------------
    async def get_config(self) -> Dict[str, Any]:
        return await self._request("GET", "/config")

    async def update_config(self, extra_percentage: float) -> Dict[str, Any]:
        return await self._request("PUT", "/config", {"extraPercentage": extra_percentage})
