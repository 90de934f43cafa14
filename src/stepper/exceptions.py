"""
Domain exceptions.

Services raise these and the API layer maps each one to an HTTP status
and an error envelope (see stepper.api.errors).
"""


class StepperError(Exception):
    """Base class for all errors the API knows how to report."""

    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class NotFoundError(StepperError):
    status_code = 404


class UnauthorizedError(StepperError):
    """Caller is not authenticated or does not own the resource."""

    status_code = 401


class ValidationError(StepperError):
    status_code = 400


class InvalidOperationError(StepperError):
    """Request is well formed but conflicts with the current state."""

    status_code = 400


class ExternalServiceError(StepperError):
    """An upstream service (Supabase Auth/Storage) failed or was unreachable."""

    status_code = 502
