"""Signup orchestration: identity, organization, admin binding, profile, settings.

Steps run strictly in order. The first three are fatal; the last two only log.
Nothing created before a fatal failure is rolled back: the identity (and the
organization, when the role binding fails) is kept and the user is sent to
log in, where an identity without an organization is routed to
organization creation. The compensation stack records those retentions
explicitly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from rubberband.errors.exceptions import (
    AccountCreationFailed,
    OrganizationCreationFailed,
    ProfileVerificationFailed,
    RoleAssignmentFailed,
    SettingsInitFailed,
)
from rubberband.models.enums import NextStep, ProvisioningState, Role
from rubberband.models.tenant import AuthSession, Organization
from rubberband.services.backend.base import DataService, IdentityService
from rubberband.services.context import UserSessionContext
from rubberband.services.workflows.ensure import ensure_organization_settings, ensure_profile
from rubberband.services.workflows.steps import CompensationStack, StepResult, run_step

logger = logging.getLogger(__name__)


@dataclass
class ProvisioningResult:
    state: ProvisioningState
    session: AuthSession
    organization: Organization
    steps: list[StepResult] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    next_step: NextStep = NextStep.ONBOARDING

    @property
    def identity_id(self) -> str:
        return self.session.user.id


class ProvisioningWorkflow:
    """Turns (email, password, organization name) into a tenant with one admin."""

    def __init__(self, identity: IdentityService, data: DataService):
        self._identity = identity
        self._data = data

    async def provision(self, email: str, password: str, org_name: str) -> ProvisioningResult:
        logger.info("Starting signup for %s with organization %r", email, org_name)
        steps: list[StepResult] = []
        rollback = CompensationStack()

        # Step 1: identity
        step = await run_step(
            "create_identity",
            lambda: self._identity.create_identity(email, password),
            fatal=True,
            reached=ProvisioningState.IDENTITY_CREATED,
        )
        steps.append(step)
        if not step.ok:
            # Rejections by the identity service stay 400, outages keep their 5xx
            status = step.error.status_code if step.error.status_code >= 500 else 400
            raise AccountCreationFailed(
                step.error.message,
                state=ProvisioningState.ABORTED_AT_IDENTITY,
                cause=step.error,
                status_code=status,
            ) from step.error
        auth: AuthSession = step.value
        user_id = auth.user.id
        ctx = UserSessionContext(user_id=user_id, email=auth.user.email, access_token=auth.access_token)
        rollback.retain(f"identity {user_id} (recovered through login)")
        logger.info("Identity created: %s", user_id)

        # Step 2: organization
        step = await run_step(
            "create_organization",
            lambda: self._data.create_organization(ctx, org_name),
            fatal=True,
            reached=ProvisioningState.ORGANIZATION_CREATED,
        )
        steps.append(step)
        if not step.ok:
            await rollback.unwind()
            raise OrganizationCreationFailed(
                state=ProvisioningState.ABORTED_AT_ORGANIZATION,
                cause=step.error,
                identity_id=user_id,
            ) from step.error
        organization: Organization = step.value
        rollback.retain(f"organization {organization.id}")
        logger.info("Organization created: %s", organization.id)

        # Step 3: founding admin binding
        step = await run_step(
            "create_role_binding",
            lambda: self._data.create_role_binding(ctx, user_id, organization.id, Role.ADMIN),
            fatal=True,
            reached=ProvisioningState.ROLE_BOUND,
        )
        steps.append(step)
        if not step.ok:
            await rollback.unwind()
            raise RoleAssignmentFailed(
                state=ProvisioningState.ABORTED_AT_ROLE,
                cause=step.error,
                identity_id=user_id,
                organization_id=organization.id,
            ) from step.error
        logger.info("Admin role bound for %s in %s", user_id, organization.id)

        warnings: list[str] = []

        # Step 4: profile (may already exist through the signup trigger)
        step = await run_step(
            "ensure_profile",
            lambda: ensure_profile(self._data, ctx, user_id, auth.user.email),
            fatal=False,
            reached=ProvisioningState.PROFILE_CHECKED,
        )
        steps.append(step)
        if not step.ok:
            failure = ProfileVerificationFailed(
                "Profile verification failed",
                state=ProvisioningState.PROFILE_CHECKED,
                cause=step.error,
                identity_id=user_id,
            )
            logger.warning("Continuing signup without profile: %s", failure.details)
            warnings.append(failure.error_type)

        # Step 5: settings (check-then-insert)
        step = await run_step(
            "ensure_organization_settings",
            lambda: ensure_organization_settings(self._data, ctx, organization.id),
            fatal=False,
            reached=ProvisioningState.SETTINGS_CHECKED,
        )
        steps.append(step)
        if not step.ok:
            failure = SettingsInitFailed(
                "Organization settings initialization failed",
                state=ProvisioningState.SETTINGS_CHECKED,
                cause=step.error,
                identity_id=user_id,
                organization_id=organization.id,
            )
            logger.warning("Continuing signup without settings: %s", failure.details)
            warnings.append(failure.error_type)

        logger.info("Signup completed for %s, routing to onboarding", user_id)
        return ProvisioningResult(
            state=ProvisioningState.DONE,
            session=auth,
            organization=organization,
            steps=steps,
            warnings=warnings,
        )
