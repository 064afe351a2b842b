"""
Error taxonomy shared by the store, the services and the HTTP boundary.

Every error carries an ErrorKind. Services raise; the API layer maps the
kind to a status code in one place (see app.main) without re-interpreting it.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    VALIDATION = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    AUTHENTICATION = "AUTHENTICATION_ERROR"
    DUPLICATE = "DUPLICATE"
    EXTERNAL_SERVICE = "EXTERNAL_SERVICE_ERROR"
    PERSISTENCE = "PERSISTENCE_ERROR"


class ProviderErrorKind(str, Enum):
    CARD_DECLINED = "card_declined"
    RATE_LIMITED = "rate_limited"
    INVALID_REQUEST = "invalid_request"
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    MISCONFIGURED = "misconfigured"


class DebtServiceError(Exception):
    """Base class; `kind` decides the transport-level status."""

    kind: ErrorKind = ErrorKind.VALIDATION
    status_code: int = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DebtServiceError):
    kind = ErrorKind.VALIDATION
    status_code = 400


class NotFoundError(DebtServiceError):
    kind = ErrorKind.NOT_FOUND
    status_code = 404


class ConflictError(DebtServiceError):
    kind = ErrorKind.CONFLICT
    status_code = 409


class AuthenticationError(DebtServiceError):
    kind = ErrorKind.AUTHENTICATION
    status_code = 400

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


class DuplicateError(DebtServiceError):
    kind = ErrorKind.DUPLICATE
    status_code = 409


class PersistenceError(DebtServiceError):
    kind = ErrorKind.PERSISTENCE
    status_code = 503


_PROVIDER_STATUS = {
    ProviderErrorKind.CARD_DECLINED: 402,
    ProviderErrorKind.RATE_LIMITED: 429,
    ProviderErrorKind.INVALID_REQUEST: 400,
    ProviderErrorKind.PROVIDER_UNAVAILABLE: 503,
    ProviderErrorKind.MISCONFIGURED: 500,
}


class ExternalServiceError(DebtServiceError):
    """
    The payment provider refused or failed a request.

    `message` is the sanitized text shown to the payer; `detail` keeps the
    provider's own wording for logs only.
    """

    kind = ErrorKind.EXTERNAL_SERVICE

    def __init__(
        self,
        provider_kind: ProviderErrorKind,
        message: str,
        detail: Optional[str] = None,
        provider_code: Optional[str] = None,
    ):
        super().__init__(message)
        self.provider_kind = provider_kind
        self.detail = detail
        self.provider_code = provider_code
        self.status_code = _PROVIDER_STATUS.get(provider_kind, 500)
