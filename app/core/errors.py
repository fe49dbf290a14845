"""
Typed failures raised by the service layer.

Each error knows the HTTP status and machine-readable code it maps to; the
handler registered in app.main renders them as
{"status": "error", "code": ..., "detail": ...}.
"""


class ServiceError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, detail: str = "Internal error"):
        super().__init__(detail)
        self.detail = detail


class ValidationError(ServiceError):
    status_code = 400
    code = "VALIDATION_ERROR"


class AuthRequired(ServiceError):
    status_code = 401
    code = "AUTH_REQUIRED"


class NotFound(ServiceError):
    status_code = 404
    code = "NOT_FOUND"


class Conflict(ServiceError):
    status_code = 409
    code = "CONFLICT"


class UpstreamError(ServiceError):
    status_code = 500
    code = "UPSTREAM_ERROR"


class FoodSourceError(UpstreamError):
    pass


class ProviderError(ServiceError):
    status_code = 500
    code = "PROVIDER_ERROR"


class ProviderNotConfigured(ServiceError):
    status_code = 503
    code = "AI_NOT_CONFIGURED"


class DatabaseNotConfigured(ServiceError):
    status_code = 503
    code = "DB_NOT_CONFIGURED"
