"""
Typed failures raised by the marketplace services.
Each carries a stable code and the HTTP status the API layer renders it with.
"""


class MarketplaceError(Exception):
    code = "MARKETPLACE_ERROR"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(MarketplaceError):
    code = "VALIDATION_ERROR"
    status_code = 400


class NotFoundError(MarketplaceError):
    code = "NOT_FOUND"
    status_code = 404


class ForbiddenError(MarketplaceError):
    code = "FORBIDDEN"
    status_code = 403


class ConflictError(MarketplaceError):
    code = "CONFLICT"
    status_code = 409


class InvalidStateError(MarketplaceError):
    """The resource's current lifecycle state does not allow the operation."""

    code = "INVALID_STATE"
    status_code = 409
