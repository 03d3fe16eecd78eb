"""SQLAlchemy ORM models - import all to register with Base.metadata."""

from rubberband.db.models.identity import IdentityRow
from rubberband.db.models.organization import OrganizationRow, OrganizationSettingsRow
from rubberband.db.models.user_role import UserRoleRow
from rubberband.db.models.profile import ProfileRow
from rubberband.db.models.invitation import InvitationRow
from rubberband.db.models.user_log import UserLogRow
from rubberband.db.models.team import TeamMemberRow, TeamRow

__all__ = [
    "IdentityRow",
    "OrganizationRow",
    "OrganizationSettingsRow",
    "UserRoleRow",
    "ProfileRow",
    "InvitationRow",
    "UserLogRow",
    "TeamRow",
    "TeamMemberRow",
]
