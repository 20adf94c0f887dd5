"""
Error taxonomy shared by the services and the API layer.

Every domain failure is a ``DomainError`` carrying the HTTP status it maps
to and a short machine-readable ``code``.  The API renders them with one
exception handler, so services never import FastAPI.
"""


class DomainError(Exception):
    status_code = 400
    code = "domain_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DomainError):
    status_code = 422
    code = "validation_error"


class InvalidQuantity(ValidationError):
    code = "invalid_quantity"


class AddressNotGeocoded(ValidationError):
    code = "address_not_geocoded"


class PayoutAccountMissing(ValidationError):
    code = "payout_account_missing"


class NotFoundError(DomainError):
    status_code = 404
    code = "not_found"


class ConflictError(DomainError):
    status_code = 409
    code = "conflict"


class InvalidStateTransition(ConflictError):
    """Raised when a status change violates the state machine."""

    code = "invalid_state_transition"


class IllegalCancellation(ConflictError):
    code = "illegal_cancellation"


class DriverUnavailable(ConflictError):
    code = "driver_unavailable"


class InsufficientBalance(ConflictError):
    code = "insufficient_balance"


class ExternalServiceError(DomainError):
    status_code = 502
    code = "external_service_error"


class PersistenceError(DomainError):
    status_code = 500
    code = "persistence_error"
