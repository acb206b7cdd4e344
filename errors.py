# errors.py
"""
Error taxonomy shared by the stores, the services and the HTTP layer.

Each error has a stable `kind` (sent to the client) and a human readable
message. main.py turns them into JSON responses with the matching status code.
"""


class KaarigarError(Exception):
    kind = "internal"
    status_code = 500
    default_message = "Something went wrong"

    def __init__(self, message: str | None = None, *, trace=None):
        self.message = message or self.default_message
        # Optional ResolutionTrace, only ever shown through the development diagnostic channel
        self.trace = trace
        super().__init__(self.message)


class InvalidArgumentError(KaarigarError):
    kind = "invalid_argument"
    status_code = 400
    default_message = "Invalid request"


class UnauthenticatedError(KaarigarError):
    kind = "unauthenticated"
    status_code = 401
    default_message = "Authentication required"


class ForbiddenError(KaarigarError):
    kind = "forbidden"
    status_code = 403
    default_message = "Unauthorized access"


class NotFoundError(KaarigarError):
    kind = "not_found"
    status_code = 404
    default_message = "Not found"


class ConflictError(KaarigarError):
    kind = "conflict"
    status_code = 409
    default_message = "Already exists"


class TransientError(KaarigarError):
    """Database unavailable or timed out. Safe for the caller to retry."""

    kind = "transient"
    status_code = 503
    default_message = "Service temporarily unavailable, please retry"


class InternalError(KaarigarError):
    pass
