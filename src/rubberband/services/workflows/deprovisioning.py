"""Self-service account deletion.

Order is fixed: check the administrative credential, run the data service's
cascading ``delete_user_account`` procedure under the user's own session, and
only then delete the identity. Every failure ends the invocation; nothing is
retried. A failure in the last step leaves data deleted but the identity in
place and is logged for operators.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from rubberband.errors.exceptions import (
    AuthenticationError,
    DataCleanupFailed,
    IdentityDeletionFailed,
    RubberbandError,
    ServiceMisconfigured,
)
from rubberband.models.enums import DeprovisioningState, StepOutcome
from rubberband.services.backend.base import DataService, IdentityService
from rubberband.services.context import AdministrativeContext, UserSessionContext, require_admin
from rubberband.services.workflows.steps import StepResult, run_step

logger = logging.getLogger(__name__)


@dataclass
class DeprovisioningResult:
    state: DeprovisioningState
    user_id: str
    steps: list[StepResult] = field(default_factory=list)


class DeprovisioningWorkflow:
    def __init__(self, identity: IdentityService, data: DataService, admin: AdministrativeContext):
        self._identity = identity
        self._data = data
        self._admin = require_admin(admin)

    async def _resolve_requesting_identity(self, session: UserSessionContext) -> str:
        """Ask the identity service who owns the session token."""
        try:
            identity = await self._identity.get_user(session.access_token)
        except RubberbandError as exc:
            logger.warning("Account deletion rejected, session not resolvable: %s", exc.message)
            raise AuthenticationError(f"Authentication failed: {exc.message}") from exc
        if identity.id != session.user_id:
            raise AuthenticationError("Session does not belong to the requesting user")
        return identity.id

    async def _check_privilege(self) -> None:
        await self._identity.list_identities(self._admin, page=1, per_page=1)

    async def deprovision(
        self, session: UserSessionContext, *, is_last_member: bool | None = None
    ) -> DeprovisioningResult:
        """Delete the session owner's data and identity.

        ``is_last_member`` is the client's guess and is only logged; the
        cascade scope is decided by the data service procedure.
        """
        user_id = await self._resolve_requesting_identity(session)
        logger.info("Processing account deletion for %s (client last-member hint: %s)", user_id, is_last_member)
        steps: list[StepResult] = []

        # Step 1: privilege check
        try:
            await self._check_privilege()
        except Exception as exc:  # any error here means no deletion
            steps.append(StepResult("verify_privilege", StepOutcome.FATAL_FAILURE, error=exc))
            logger.error("Administrative credential check failed, nothing deleted: %s", exc)
            raise ServiceMisconfigured(
                "Account deletion is unavailable: the service is misconfigured",
                state=DeprovisioningState.ABORTED_AT_PRIVILEGE,
                cause=exc,
                identity_id=user_id,
            ) from exc
        steps.append(
            StepResult("verify_privilege", StepOutcome.SUCCESS, state=DeprovisioningState.PRIVILEGE_VERIFIED)
        )

        # Step 2: cascading data deletion, while the identity still authorizes it
        step = await run_step(
            "delete_user_account",
            lambda: self._data.delete_user_account(session, user_id),
            fatal=True,
            reached=DeprovisioningState.DATA_DELETED,
        )
        steps.append(step)
        if not step.ok or not step.value:
            step.state = None
            cause = step.error if step.error is not None else RuntimeError("delete_user_account returned false")
            logger.error("Data cleanup failed for %s, identity left untouched: %s", user_id, cause)
            raise DataCleanupFailed(
                "Failed to delete account data. Your account is unchanged; please try again.",
                state=DeprovisioningState.ABORTED_AT_DATA,
                cause=cause,
                identity_id=user_id,
            ) from step.error

        # Step 3: identity deletion
        step = await run_step(
            "delete_identity",
            lambda: self._identity.delete_identity(self._admin, user_id),
            fatal=True,
            reached=DeprovisioningState.IDENTITY_DELETED,
        )
        steps.append(step)
        if not step.ok:
            logger.critical(
                "operator_action_required: data for %s was deleted but the identity was not: %s",
                user_id,
                step.error,
                extra={"operator_action_required": True, "user_id": user_id},
            )
            raise IdentityDeletionFailed(
                "Your data was deleted but the account could not be removed. Support has been notified.",
                state=DeprovisioningState.ABORTED_AT_IDENTITY,
                cause=step.error,
                identity_id=user_id,
            ) from step.error

        logger.info("User account %s successfully deleted", user_id)
        return DeprovisioningResult(state=DeprovisioningState.IDENTITY_DELETED, user_id=user_id, steps=steps)
