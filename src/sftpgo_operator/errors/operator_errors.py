"""
Operator error hierarchy with categorization.

This module defines the error types used throughout the SFTPGo operator.
Every failure inside a reconciliation surfaces as exactly one of these;
the reconciliation driver is the only place that turns them into a retry.
"""


class OperatorError(Exception):
    """
    Base error class for all operator-related exceptions.

    Provides categorization and user guidance for resolution.
    """

    def __init__(
        self,
        message: str,
        category: str,
        user_action: str | None = None,
        cause: Exception | None = None,
    ):
        """
        Initialize operator error.

        Args:
            message: Human-readable error description
            category: Error category (cluster_api, user_input, auth_issuance, ...)
            user_action: What user should do to resolve the issue
            cause: Underlying exception that caused this error
        """
        super().__init__(message)
        self.category = category
        self.user_action = user_action
        self.cause = cause

    def __str__(self) -> str:
        """Enhanced string representation with user guidance."""
        base_msg = super().__str__()
        if self.user_action:
            return f"{base_msg}\nAction required: {self.user_action}"
        return base_msg


class ClusterApiError(OperatorError):
    """Error communicating with the Kubernetes API."""

    def __init__(
        self,
        message: str,
        reason: str | None = None,
        cause: Exception | None = None,
    ):
        if reason:
            message = f"{message} (reason: {reason})"
        super().__init__(
            message=f"Kubernetes API error: {message}",
            category="cluster_api",
            user_action="Check RBAC permissions and cluster connectivity",
            cause=cause,
        )
        self.reason = reason


class UserInputError(OperatorError):
    """The resource specification is invalid or incomplete."""

    def __init__(
        self, message: str, field: str | None = None, user_action: str | None = None
    ):
        if field:
            message = f"Invalid value for field '{field}': {message}"
        super().__init__(
            message=message,
            category="user_input",
            user_action=user_action
            or "Check resource specification and fix validation errors",
        )
        self.field = field


class AuthIssuanceError(OperatorError):
    """The SFTPGo token endpoint was unreachable or rejected the credentials."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        cause: Exception | None = None,
    ):
        if status_code:
            message = f"HTTP {status_code}: {message}"
        super().__init__(
            message=f"Admin token issuance failed: {message}",
            category="auth_issuance",
            user_action="Check SFTPGo reachability and the admin credentials secret",
            cause=cause,
        )
        self.status_code = status_code


class ExternalApiError(OperatorError):
    """The SFTPGo admin API rejected a request."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
        cause: Exception | None = None,
    ):
        if status_code:
            message = f"HTTP {status_code}: {message}"
        super().__init__(
            message=f"SFTPGo admin API error: {message}",
            category="external_api",
            user_action="Check SFTPGo instance status and the requested configuration",
            cause=cause,
        )
        self.status_code = status_code
        self.response_body = response_body

    def body_preview(self, limit: int = 2048) -> str | None:
        """Return a truncated preview of the response body for logging."""

        if self.response_body is None:
            return None

        if len(self.response_body) <= limit:
            return self.response_body

        return f"{self.response_body[:limit]}...<truncated>"


class DecodingError(OperatorError):
    """A secret value or response payload could not be decoded."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(
            message=f"Decoding error: {message}",
            category="decoding",
            user_action="Check that the secret holds valid base64-encoded UTF-8 data",
            cause=cause,
        )
