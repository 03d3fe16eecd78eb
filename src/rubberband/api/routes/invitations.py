"""Invitation routes."""

from fastapi import APIRouter

from rubberband.dependencies import CurrentSession, Data, Notifier
from rubberband.models.api import AcceptInvitationRequest, InvitationResponse, InviteRequest, InviteResponse
from rubberband.models.tenant import InvitationDetails, RoleBinding
from rubberband.services.invitations import InvitationService, InviteOutcome

router = APIRouter(tags=["Invitations"])


def _invite_response(outcome: InviteOutcome) -> InviteResponse:
    return InviteResponse(
        added_directly=outcome.added_directly,
        email_sent=outcome.email_sent,
        invitation=InvitationResponse.model_validate(outcome.invitation) if outcome.invitation else None,
        membership=outcome.binding,
    )


@router.get("/invitations", response_model=list[InvitationResponse])
async def list_invitations(session: CurrentSession, data: Data, notifier: Notifier):
    invitations = await InvitationService(data, notifier).list_invitations(session)
    return [InvitationResponse.model_validate(i) for i in invitations]


@router.post("/invitations", response_model=InviteResponse, status_code=201)
async def invite(body: InviteRequest, session: CurrentSession, data: Data, notifier: Notifier):
    outcome = await InvitationService(data, notifier).invite(session, body.email, body.role)
    return _invite_response(outcome)


@router.get("/invitations/validate", response_model=InvitationDetails)
async def validate_invitation(token: str, data: Data, notifier: Notifier):
    return await InvitationService(data, notifier).validate(token)


@router.post("/invitations/accept", response_model=RoleBinding)
async def accept_invitation(
    body: AcceptInvitationRequest, session: CurrentSession, data: Data, notifier: Notifier
):
    return await InvitationService(data, notifier).accept(session, body.token)


@router.post("/invitations/{invitation_id}/resend", response_model=InviteResponse)
async def resend_invitation(invitation_id: str, session: CurrentSession, data: Data, notifier: Notifier):
    outcome = await InvitationService(data, notifier).resend(session, invitation_id)
    return _invite_response(outcome)


@router.post("/invitations/{invitation_id}/revoke", response_model=InvitationResponse)
async def revoke_invitation(invitation_id: str, session: CurrentSession, data: Data, notifier: Notifier):
    invitation = await InvitationService(data, notifier).revoke(session, invitation_id)
    return InvitationResponse.model_validate(invitation)
