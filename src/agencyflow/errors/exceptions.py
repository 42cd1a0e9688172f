"""Error taxonomy shared by the services, the HTTP layer and the client."""


class AgencyFlowError(Exception):
    """Base exception for AgencyFlow.

    ``error_kind`` is the stable, caller-facing category reported in batch
    results; ``code`` is the wire code used in error response bodies.
    """

    error_kind = "InternalError"

    def __init__(self, code: str, message: str, details=None, status_code: int = 500):
        self.code = code
        self.message = message
        self.details = details
        self.status_code = status_code
        super().__init__(message)


class ValidationError(AgencyFlowError):
    """Malformed or missing input (self-approval, missing reason, phase jump)."""

    error_kind = "ValidationError"

    def __init__(self, message: str, details=None):
        super().__init__("VALIDATION_ERROR", message, details, status_code=400)


class NotFoundError(AgencyFlowError):
    """Resource not found."""

    error_kind = "NotFound"

    def __init__(self, resource: str, resource_id: str, message: str | None = None):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(
            "NOT_FOUND",
            message or f"{resource} '{resource_id}' not found",
            status_code=404,
        )


class AuthenticationError(AgencyFlowError):
    """Authentication required or token invalid."""

    error_kind = "Unauthenticated"

    def __init__(self, message: str = "Authentication required"):
        super().__init__("AUTHENTICATION_ERROR", message, status_code=401)


class ForbiddenError(AgencyFlowError):
    """Actor lacks the relationship or role required for the operation."""

    error_kind = "Forbidden"

    def __init__(self, message: str = "Not allowed", details=None):
        super().__init__("FORBIDDEN", message, details, status_code=403)


class ConflictError(AgencyFlowError):
    """Resource state conflict."""

    error_kind = "Conflict"

    def __init__(self, message: str, details=None):
        super().__init__("CONFLICT", message, details, status_code=409)


class AlreadyDecidedError(ConflictError):
    """A decision was attempted on a request that is no longer pending."""

    user_message = "This item was already decided"

    def __init__(self, approval_id: str, status: str | None = None):
        self.approval_id = approval_id
        self.current_status = status
        details = {"approval_id": approval_id, "reason": "already_decided"}
        if status:
            details["status"] = status
        super().__init__(self.user_message, details)


class TransportError(AgencyFlowError):
    """The server could not be reached or the response was unusable (client side)."""

    error_kind = "NetworkFailure"

    def __init__(self, message: str = "Network failure"):
        super().__init__("TRANSPORT_ERROR", message, status_code=503)
