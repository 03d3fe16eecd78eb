"""Step classification, compensation stack, ensure-exists helpers and the e-mail notifier."""

import json

import httpx
import pytest

from conftest import session_of
from rubberband.errors.exceptions import BackendError, ConflictError
from rubberband.models.enums import StepOutcome
from rubberband.services.notifier import EmailNotifier, build_invitation_email
from rubberband.services.workflows.ensure import ensure_organization_settings, ensure_profile
from rubberband.services.workflows.steps import CompensationStack, run_step


# ---------------------------------------------------------------------------
# run_step
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_run_step_success():
    async def ok():
        return 42

    step = await run_step("answer", ok, fatal=True)
    assert step.ok
    assert step.value == 42
    assert step.as_dict() == {"name": "answer", "outcome": "success"}


@pytest.mark.asyncio
async def test_run_step_classifies_failures():
    async def fail():
        raise BackendError("thing", "down")

    fatal = await run_step("thing", fail, fatal=True)
    soft = await run_step("thing", fail, fatal=False)
    assert fatal.outcome == StepOutcome.FATAL_FAILURE
    assert soft.outcome == StepOutcome.NON_FATAL_FAILURE
    assert "down" in soft.as_dict()["error"]


@pytest.mark.asyncio
async def test_run_step_propagates_programming_errors():
    async def bug():
        raise KeyError("oops")

    with pytest.raises(KeyError):
        await run_step("bug", bug, fatal=True)


# ---------------------------------------------------------------------------
# CompensationStack
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_unwind_runs_newest_first_and_reports():
    order = []

    async def undo_a():
        order.append("a")

    async def undo_b():
        raise BackendError("undo_b", "nope")

    stack = CompensationStack()
    stack.push("a", undo_a)
    stack.retain("kept")
    stack.push("b", undo_b)

    report = await stack.unwind()
    assert report == ["failed: b", "retained: kept", "undone: a"]
    assert order == ["a"]
    assert stack.items == []


# ---------------------------------------------------------------------------
# ensure-exists
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_ensure_profile_is_idempotent(backend):
    ctx = session_of(await backend.create_identity("idem@example.com", "s3cret-pass"))
    first, created = await ensure_profile(backend, ctx, ctx.user_id, ctx.email)
    second, created_again = await ensure_profile(backend, ctx, ctx.user_id, ctx.email)
    assert created is True
    assert created_again is False
    assert first.id == second.id


@pytest.mark.asyncio
async def test_ensure_settings_survives_lost_race(backend, monkeypatch):
    ctx = session_of(await backend.create_identity("race@example.com", "s3cret-pass"))
    org = await backend.create_organization(ctx, "Race Org")
    real_create = backend.create_organization_settings

    async def racing_create(ctx_, organization_id, has_completed_onboarding=False):
        # The trigger wins between our check and our insert
        await real_create(ctx_, organization_id, has_completed_onboarding)
        raise ConflictError("create_organization_settings: record already exists")

    monkeypatch.setattr(backend, "create_organization_settings", racing_create)
    settings_row, created = await ensure_organization_settings(backend, ctx, org.id)
    assert created is False
    assert settings_row.organization_id == org.id


# ---------------------------------------------------------------------------
# EmailNotifier
# ---------------------------------------------------------------------------

def test_invitation_email_contains_accept_link():
    message = build_invitation_email("Acme", "guest@example.com", "tok123", "viewer")
    assert message.invitation_link.endswith("/accept-invitation?token=tok123")
    assert "Acme" in message.subject
    assert "48 hours" in message.html


@pytest.mark.asyncio
async def test_notifier_posts_to_webhook():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": "msg_1"})

    notifier = EmailNotifier(
        "https://mail.test/send", api_key="k", sender="noreply@test", transport=httpx.MockTransport(handler)
    )
    assert await notifier.send_invitation("Acme", "guest@example.com", "tok", "viewer") is True

    body = json.loads(seen[0].content)
    assert body["to"] == ["guest@example.com"]
    assert body["from"] == "noreply@test"
    assert seen[0].headers["Authorization"] == "Bearer k"


@pytest.mark.asyncio
async def test_notifier_reports_failure_without_raising():
    notifier = EmailNotifier(
        "https://mail.test/send", transport=httpx.MockTransport(lambda r: httpx.Response(500, text="down"))
    )
    assert await notifier.send_invitation("Acme", "guest@example.com", "tok", "viewer") is False

    def refuse(request):
        raise httpx.ConnectError("refused", request=request)

    notifier = EmailNotifier("https://mail.test/send", transport=httpx.MockTransport(refuse))
    assert await notifier.send_invitation("Acme", "guest@example.com", "tok", "viewer") is False
