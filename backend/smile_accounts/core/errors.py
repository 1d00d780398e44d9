"""API error classes.

Domain failures raised by the core services. Each maps to one HTTP status
in the exception handlers registered by ``smile_accounts.main``.
"""


class APIError(Exception):
    """Base class for API errors.

    All API errors have a code, message, and HTTP status.
    Subclasses set default status_code.

    Attributes:
        code: Machine-readable error code (e.g., "NOT_FOUND").
        message: Human-readable error message.
        status_code: HTTP status code to return.
        details: Optional list of additional error details.
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: list[dict] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class ValidationError(APIError):
    """Invalid input (400).

    Use for malformed input and rejected preconditions such as reusing the
    old password as the new one.
    """

    def __init__(
        self,
        message: str,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(
            code="VALIDATION_ERROR",
            message=message,
            status_code=400,
            details=details,
        )


class UnauthorizedError(APIError):
    """Authentication required (401).

    Use for bad credentials and missing, invalid or expired sessions.
    """

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(
            code="UNAUTHORIZED",
            message=message,
            status_code=401,
        )


class ForbiddenError(APIError):
    """Not allowed to access resource (403).

    Use when auth is valid but the caller lacks permission.
    """

    def __init__(self, message: str = "Access denied") -> None:
        super().__init__(
            code="FORBIDDEN",
            message=message,
            status_code=403,
        )


class AdminRequiredError(ForbiddenError):
    """Admin access required (403)."""

    def __init__(self) -> None:
        APIError.__init__(
            self,
            code="ADMIN_REQUIRED",
            message="Access denied. Admin privileges required",
            status_code=403,
        )


class AccountBannedError(ForbiddenError):
    """Account is banned from signing in (403)."""

    def __init__(self) -> None:
        APIError.__init__(
            self,
            code="ACCOUNT_BANNED",
            message="This account has been suspended",
            status_code=403,
        )


class NotFoundError(APIError):
    """Resource not found (404).

    Use when the account, device or token does not exist.
    """

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        if resource_id:
            message = f"{resource} with id '{resource_id}' not found"
        else:
            message = f"{resource} not found"
        super().__init__(
            code="NOT_FOUND",
            message=message,
            status_code=404,
        )


class TokenNotFoundError(NotFoundError):
    """No unconsumed token matches (404).

    Covers unknown values, tokens of another account or device, and
    tokens that were already consumed or superseded.
    """

    def __init__(self) -> None:
        APIError.__init__(
            self,
            code="TOKEN_NOT_FOUND",
            message="Token is invalid or has already been used",
            status_code=404,
        )


class ConflictError(APIError):
    """Duplicate or conflicting resource (409).

    Accepts custom code for specific conflict types.
    """

    def __init__(
        self,
        code: str,
        message: str,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details,
        )


class AlreadyVerifiedError(ConflictError):
    """Email verification requested for a verified account (409)."""

    def __init__(self) -> None:
        super().__init__(
            code="ALREADY_VERIFIED",
            message="Account email is already verified",
        )


class TokenExpiredError(APIError):
    """Token is past its time-to-live (410)."""

    def __init__(self, message: str = "Activation link has expired") -> None:
        super().__init__(
            code="TOKEN_EXPIRED",
            message=message,
            status_code=410,
        )


class NotificationError(APIError):
    """Outbound email could not be delivered (502).

    Raised by notification dispatchers. Only flows whose whole purpose is
    token delivery let it reach the caller; the rest log and continue.
    """

    def __init__(self, message: str = "Email delivery failed") -> None:
        super().__init__(
            code="NOTIFICATION_FAILED",
            message=message,
            status_code=502,
        )


class InternalError(APIError):
    """Unexpected server error (500).

    Use for unhandled exceptions. Never expose stack traces to clients.
    """

    def __init__(self, message: str = "An unexpected error occurred") -> None:
        super().__init__(
            code="INTERNAL_ERROR",
            message=message,
            status_code=500,
        )
