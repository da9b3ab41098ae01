"""
intake/pricing/errors.py

Error taxonomy shared by the Report Service (server) and its clients.

- ValidationError        : malformed input, caught before any mutation.
- StateConflictError     : lifecycle rejection, never retry, reload instead.
- NotFoundError          : unknown report/item/product/supplier/user.
- ServiceUnavailableError: transport failure or 5xx, safe to retry.
- WizardBusyError        : a wizard call is already in flight.
"""

from __future__ import annotations


class IntakeError(Exception):
    """Base error. `kind` is the machine-readable category sent on the wire."""

    kind = "error"
    status_code = 500
    retryable = False

    def __init__(self, message: str, *, errors: dict[str, str] | None = None):
        super().__init__(message)
        self.message = message
        self.errors = dict(errors or {})

    def to_dict(self) -> dict:
        payload = {"message": self.message, "kind": self.kind}
        if self.errors:
            payload["errors"] = self.errors
        return payload


class ValidationError(IntakeError):
    kind = "validation"
    status_code = 400

    @classmethod
    def for_fields(cls, errors: dict[str, str]) -> "ValidationError":
        first = next(iter(errors.values()), "Invalid input")
        return cls(first, errors=errors)


class StateConflictError(IntakeError):
    kind = "state_conflict"
    status_code = 409


class NotFoundError(IntakeError):
    kind = "not_found"
    status_code = 404


class ServiceUnavailableError(IntakeError):
    kind = "transient"
    status_code = 503
    retryable = True


class WizardBusyError(IntakeError):
    kind = "busy"
    status_code = 409
    retryable = True


ERRORS_BY_KIND: dict[str, type[IntakeError]] = {
    cls.kind: cls
    for cls in (ValidationError, StateConflictError, NotFoundError, ServiceUnavailableError, WizardBusyError)
}
