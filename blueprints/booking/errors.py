# blueprints/booking/errors.py
from __future__ import annotations


class LedgerError(Exception):
    """Base of every error the booking ledger reports to its callers."""
    code = "ledger_error"
    http_status = 500
    retryable = False

    def __init__(self, detail: str | None = None, **context):
        super().__init__(detail or self.code)
        self.detail = detail
        self.context = context

    def to_dict(self) -> dict:
        body = {"error": self.code}
        if self.detail:
            body["detail"] = self.detail
        if self.retryable:
            body["retryable"] = True
        return body


class SlotFull(LedgerError):
    code = "slot_full"
    http_status = 409


class DuplicateBooking(LedgerError):
    code = "duplicate_booking"
    http_status = 409


class NotFound(LedgerError):
    code = "not_found"
    http_status = 404


class TransientStoreFailure(LedgerError):
    code = "transient_store_failure"
    http_status = 503
    retryable = True


class InvalidInput(LedgerError):
    code = "invalid_input"
    http_status = 400
