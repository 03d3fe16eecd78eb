"""Organization invitations: issue, resend, revoke, validate and accept."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from rubberband.config import settings
from rubberband.errors.exceptions import ConflictError, NotFoundError, ValidationError
from rubberband.models.enums import InvitationStatus, Role
from rubberband.models.tenant import Invitation, InvitationDetails, RoleBinding
from rubberband.services.backend.base import DataService
from rubberband.services.context import UserSessionContext
from rubberband.services.members import require_org_admin
from rubberband.services.notifier import EmailNotifier
from rubberband.services.workflows.ensure import ensure_profile

logger = logging.getLogger(__name__)


@dataclass
class InviteOutcome:
    """Either a pending invitation or, for a known user, a direct binding."""

    invitation: Invitation | None = None
    binding: RoleBinding | None = None
    email_sent: bool = False

    @property
    def added_directly(self) -> bool:
        return self.binding is not None


class InvitationService:
    def __init__(self, data: DataService, notifier: EmailNotifier):
        self._data = data
        self._notifier = notifier

    def _expiry(self) -> datetime:
        return datetime.now(timezone.utc) + timedelta(hours=settings.invitation_expiry_hours)

    async def _organization_name(self, ctx: UserSessionContext, organization_id: str) -> str:
        org = await self._data.get_organization(ctx, organization_id)
        return org.name if org else "your organization"

    async def _notify(self, ctx: UserSessionContext, invitation: Invitation) -> bool:
        org_name = await self._organization_name(ctx, invitation.organization_id)
        return await self._notifier.send_invitation(org_name, invitation.email, invitation.token, invitation.role)

    async def _get_own(self, ctx: UserSessionContext, invitation_id: str) -> Invitation:
        membership = await require_org_admin(self._data, ctx)
        invitation = await self._data.get_invitation(ctx, invitation_id)
        if invitation is None or invitation.organization_id != membership.organization_id:
            raise NotFoundError("Invitation", invitation_id)
        return invitation

    async def invite(self, ctx: UserSessionContext, email: str, role: Role) -> InviteOutcome:
        membership = await require_org_admin(self._data, ctx)
        org_id = membership.organization_id
        email = email.strip().lower()

        existing = await self._data.find_profile_by_email(ctx, email)
        if existing is not None:
            bindings = await self._data.list_role_bindings(ctx, user_id=existing.id, organization_id=org_id)
            if bindings:
                raise ConflictError("This user is already a member of the organization")
            binding = await self._data.create_role_binding(ctx, existing.id, org_id, role)
            logger.info("Existing user %s added to %s as %s", existing.id, org_id, role)
            return InviteOutcome(binding=binding)

        token = await self._data.generate_invitation_token(ctx)
        previous = await self._data.find_invitation(ctx, org_id, email)
        if previous is not None:
            if previous.status == InvitationStatus.PENDING and previous.expires_at > datetime.now(timezone.utc):
                raise ConflictError("An invitation for this email already exists")
            # Revoked, expired or stale invitations are reissued in place
            invitation = await self._data.update_invitation(
                ctx,
                previous.id,
                {"token": token, "expires_at": self._expiry(), "status": InvitationStatus.PENDING, "role": role},
            )
        else:
            try:
                invitation = await self._data.create_invitation(
                    ctx,
                    organization_id=org_id,
                    email=email,
                    role=role,
                    invited_by=ctx.user_id,
                    token=token,
                    expires_at=self._expiry(),
                )
            except ConflictError as exc:
                raise ConflictError("An invitation for this email already exists") from exc
        logger.info("Invitation %s issued for %s in %s", invitation.id, email, org_id)

        email_sent = await self._notify(ctx, invitation)
        if not email_sent:
            logger.warning("Invitation %s created but e-mail was not delivered", invitation.id)
        return InviteOutcome(invitation=invitation, email_sent=email_sent)

    async def resend(self, ctx: UserSessionContext, invitation_id: str) -> InviteOutcome:
        invitation = await self._get_own(ctx, invitation_id)
        if invitation.status == InvitationStatus.ACCEPTED:
            raise ValidationError("Invitation has already been accepted")
        token = await self._data.generate_invitation_token(ctx)
        invitation = await self._data.update_invitation(
            ctx,
            invitation.id,
            {"token": token, "expires_at": self._expiry(), "status": InvitationStatus.PENDING},
        )
        email_sent = await self._notify(ctx, invitation)
        return InviteOutcome(invitation=invitation, email_sent=email_sent)

    async def revoke(self, ctx: UserSessionContext, invitation_id: str) -> Invitation:
        invitation = await self._get_own(ctx, invitation_id)
        if invitation.status != InvitationStatus.PENDING:
            raise ValidationError(f"Cannot revoke an invitation that is {invitation.status}")
        logger.info("Revoking invitation %s", invitation_id)
        return await self._data.update_invitation(ctx, invitation.id, {"status": InvitationStatus.REVOKED})

    async def list_invitations(self, ctx: UserSessionContext) -> list[Invitation]:
        membership = await require_org_admin(self._data, ctx)
        return await self._data.list_invitations(ctx, membership.organization_id)

    async def validate(self, token: str) -> InvitationDetails:
        return await self._data.validate_invitation_token(token)

    async def accept(self, ctx: UserSessionContext, token: str) -> RoleBinding:
        details = await self._data.validate_invitation_token(token)
        if not details.valid or not await self._data.accept_invitation(ctx, token):
            raise ValidationError("Invalid or expired invitation")
        await ensure_profile(self._data, ctx, ctx.user_id, ctx.email)
        bindings = await self._data.list_role_bindings(
            ctx, user_id=ctx.user_id, organization_id=details.organization_id
        )
        if not bindings:
            raise NotFoundError("Organization membership", ctx.user_id)
        logger.info("User %s joined %s", ctx.user_id, details.organization_id)
        return bindings[0]
