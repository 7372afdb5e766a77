"""Error taxonomy shared by the job lifecycle and the HTTP layer."""

from __future__ import annotations


class ConfigError(RuntimeError):
    """Raised at startup when required configuration is missing or unsafe."""


class AppError(Exception):
    code = "internal_error"
    status_code = 500
    retryable = False

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.__class__.__doc__ or self.code
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "retryable": self.retryable}


class ValidationError(AppError):
    """Invalid input."""

    code = "validation_error"
    status_code = 422


class NotFoundError(AppError):
    """Resource not found."""

    code = "not_found"
    status_code = 404


class UnauthorizedError(AppError):
    """Authentication required."""

    code = "unauthorized"
    status_code = 401


class ForbiddenError(AppError):
    """Not allowed to access this resource."""

    code = "forbidden"
    status_code = 403


class ConflictError(AppError):
    """State conflict."""

    code = "conflict"
    status_code = 409


class NotConfiguredError(AppError):
    """Avatar credentials are not configured for this account."""

    code = "not_configured"
    status_code = 409


class ProviderUnavailableError(AppError):
    """Video provider is unavailable."""

    code = "provider_unavailable"
    status_code = 503
    retryable = True


class ProviderRejectedError(AppError):
    """Video provider rejected the request."""

    code = "provider_rejected"
    status_code = 502


class MalformedPayloadError(AppError):
    """Webhook payload could not be parsed."""

    code = "malformed_payload"
    status_code = 400


class ScriptGenerationError(AppError):
    """Script generation failed."""

    code = "script_generation_failed"
    status_code = 502
    retryable = True
