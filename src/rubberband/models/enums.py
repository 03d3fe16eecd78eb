"""String enums shared across the API, the workflows and the backends."""

from enum import StrEnum


class Role(StrEnum):
    ADMIN = "admin"
    MANAGER = "manager"
    VIEWER = "viewer"


class TeamRole(StrEnum):
    ADMIN = "admin"
    MANAGER = "manager"
    CONTRIBUTOR = "contributor"
    VIEWER = "viewer"


class InvitationStatus(StrEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REVOKED = "revoked"


class StepOutcome(StrEnum):
    SUCCESS = "success"
    FATAL_FAILURE = "fatal_failure"
    NON_FATAL_FAILURE = "non_fatal_failure"


class ProvisioningState(StrEnum):
    START = "start"
    IDENTITY_CREATED = "identity_created"
    ORGANIZATION_CREATED = "organization_created"
    ROLE_BOUND = "role_bound"
    PROFILE_CHECKED = "profile_checked"
    SETTINGS_CHECKED = "settings_checked"
    DONE = "done"
    ABORTED_AT_IDENTITY = "aborted_at_identity"
    ABORTED_AT_ORGANIZATION = "aborted_at_organization"
    ABORTED_AT_ROLE = "aborted_at_role"


class DeprovisioningState(StrEnum):
    START = "start"
    PRIVILEGE_VERIFIED = "privilege_verified"
    DATA_DELETED = "data_deleted"
    IDENTITY_DELETED = "identity_deleted"
    ABORTED_AT_PRIVILEGE = "aborted_at_privilege"
    ABORTED_AT_DATA = "aborted_at_data"
    ABORTED_AT_IDENTITY = "aborted_at_identity"


class NextStep(StrEnum):
    """Where a client should route the user after signup or login."""

    ONBOARDING = "onboarding"
    DASHBOARD = "dashboard"
    CREATE_ORGANIZATION = "create_organization"
    LOGIN = "login"


class UserLogAction(StrEnum):
    LOGIN = "login"
    LOGOUT = "logout"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    VIEW = "view"
    NAVIGATE = "navigate"
    EXPORT = "export"
    IMPORT = "import"
    DOWNLOAD = "download"
    UPLOAD = "upload"
    SHARE = "share"
    INVITE = "invite"
