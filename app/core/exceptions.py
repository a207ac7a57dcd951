from fastapi import status


class DomainError(Exception):
    """Base class for errors raised by the subscription engine.

    Carries the HTTP status the global handler renders it with, so services
    never import FastAPI's HTTPException directly.
    """
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: str, status_code: int | None = None):
        super().__init__(detail)
        self.detail = detail
        if status_code is not None:
            self.status_code = status_code


class BadRequestError(DomainError):
    """Malformed payment event or request payload."""
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(DomainError):
    """Referenced plan, subscription, add-on or tenant does not exist."""
    status_code = status.HTTP_404_NOT_FOUND


class PaymentRequiredError(DomainError):
    """Quota exhausted or subscription expired."""
    status_code = status.HTTP_402_PAYMENT_REQUIRED


class ForbiddenError(DomainError):
    """Module not part of the active plan, or caller not linked to a tenant."""
    status_code = status.HTTP_403_FORBIDDEN


class ConflictError(DomainError):
    status_code = status.HTTP_409_CONFLICT


class InternalError(DomainError):
    """Atomic write aborted; nothing was applied."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
