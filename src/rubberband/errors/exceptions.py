"""Custom exception classes for the Rubberband API."""


class RubberbandError(Exception):
    """Base exception for Rubberband."""

    def __init__(self, code: str, message: str, details=None, status_code: int = 500):
        self.code = code
        self.message = message
        self.details = details
        self.status_code = status_code
        super().__init__(message)


class ValidationError(RubberbandError):
    """Schema or request validation failure."""

    def __init__(self, message: str, details=None):
        super().__init__("VALIDATION_ERROR", message, details, status_code=400)


class NotFoundError(RubberbandError):
    """Resource not found."""

    def __init__(self, resource: str, resource_id: str):
        super().__init__(
            "NOT_FOUND",
            f"{resource} '{resource_id}' not found",
            status_code=404,
        )


class AuthenticationError(RubberbandError):
    """Authentication required or token invalid."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__("AUTHENTICATION_ERROR", message, status_code=401)


class AuthorizationError(RubberbandError):
    """Insufficient permissions."""

    def __init__(self, message: str = "Insufficient scope"):
        super().__init__("AUTHORIZATION_ERROR", message, status_code=403)


class ConflictError(RubberbandError):
    """Resource state conflict."""

    def __init__(self, message: str):
        super().__init__("CONFLICT", message, status_code=409)


class BackendError(RubberbandError):
    """The data or identity service rejected or failed a call."""

    def __init__(self, operation: str, message: str, details=None):
        self.operation = operation
        super().__init__("BACKEND_ERROR", f"{operation} failed: {message}", details, status_code=502)


# ── Workflow errors ────────────────────────────────────────────────────────────

class WorkflowError(RubberbandError):
    """A provisioning or deprovisioning step failed.

    ``state`` is the terminal state the workflow stopped in, ``error_type`` the
    stable name clients switch on. ``cause`` keeps the underlying error message.
    """

    error_type = "WorkflowError"

    def __init__(
        self,
        message: str,
        *,
        state: str,
        cause: Exception | None = None,
        identity_id: str | None = None,
        organization_id: str | None = None,
        status_code: int = 500,
    ):
        self.state = state
        self.cause = cause
        self.identity_id = identity_id
        self.organization_id = organization_id
        details = {"state": state, "error_type": self.error_type}
        if identity_id:
            details["identity_id"] = identity_id
        if organization_id:
            details["organization_id"] = organization_id
        if cause is not None:
            details["cause"] = str(cause)
        super().__init__(self.error_type, message, details, status_code=status_code)


class AccountCreationFailed(WorkflowError):
    error_type = "AccountCreationFailed"

    def __init__(self, message: str = "Could not create user account", **kwargs):
        kwargs.setdefault("status_code", 400)
        super().__init__(message, **kwargs)


class OrganizationCreationFailed(WorkflowError):
    """Organization insert failed; the identity from step 1 is kept."""

    error_type = "OrganizationCreationFailed"
    retry_via_login = True

    def __init__(
        self,
        message: str = "Could not create organization. Sign up still succeeded - please try logging in.",
        **kwargs,
    ):
        kwargs.setdefault("status_code", 502)
        super().__init__(message, **kwargs)
        self.details["next_step"] = "login"


class RoleAssignmentFailed(WorkflowError):
    """Admin binding failed; identity and organization are kept."""

    error_type = "RoleAssignmentFailed"
    retry_via_login = True

    def __init__(
        self,
        message: str = "Sign up succeeded but role assignment failed. Please try logging in.",
        **kwargs,
    ):
        kwargs.setdefault("status_code", 502)
        super().__init__(message, **kwargs)
        self.details["next_step"] = "login"


class ProfileVerificationFailed(WorkflowError):
    error_type = "ProfileVerificationFailed"


class SettingsInitFailed(WorkflowError):
    error_type = "SettingsInitFailed"


class ServiceMisconfigured(WorkflowError):
    error_type = "ServiceMisconfigured"


class DataCleanupFailed(WorkflowError):
    error_type = "DataCleanupFailed"


class IdentityDeletionFailed(WorkflowError):
    """User data is already deleted but the identity survived."""

    error_type = "IdentityDeletionFailed"
    operator_action_required = True
