"""Self-service account deletion."""

from fastapi import APIRouter, Body

from rubberband.dependencies import AdminContext, CurrentSession, Data, Identities
from rubberband.models.api import DeleteAccountRequest, DeleteAccountResponse
from rubberband.services.workflows.deprovisioning import DeprovisioningWorkflow

router = APIRouter(tags=["Account"])


@router.delete("/account", response_model=DeleteAccountResponse)
async def delete_account(
    session: CurrentSession,
    identity: Identities,
    data: Data,
    admin: AdminContext,
    body: DeleteAccountRequest | None = Body(default=None),
):
    hint = body.is_last_member if body else None
    await DeprovisioningWorkflow(identity, data, admin).deprovision(session, is_last_member=hint)
    return DeleteAccountResponse()
