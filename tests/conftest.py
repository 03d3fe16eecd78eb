"""Shared test fixtures."""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from rubberband.db.base import Base
# Import all models to register with Base.metadata
import rubberband.db.models  # noqa: F401
from rubberband.services.backend.sql import SqlBackend
from rubberband.services.context import AdministrativeContext, UserSessionContext
from rubberband.services.notifier import EmailNotifier

SERVICE_KEY = "test-service-key"


@pytest.fixture
async def db_engine():
    """Create an in-memory SQLite async engine for testing."""
    engine = create_async_engine("sqlite+aiosqlite:///", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def backend(session_factory):
    """Built-in backend without trigger emulation."""
    return SqlBackend(session_factory, service_role_key=SERVICE_KEY)


@pytest.fixture
def admin():
    return AdministrativeContext(service_role_key=SERVICE_KEY)


class RecordingNotifier(EmailNotifier):
    """Notifier that records invitations instead of sending them."""

    def __init__(self, succeed: bool = True):
        super().__init__()
        self.succeed = succeed
        self.sent: list[dict] = []

    async def send_invitation(self, organization_name, email, token, role):
        self.sent.append({"organization_name": organization_name, "email": email, "token": token, "role": role})
        return self.succeed


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def app(backend, notifier, monkeypatch):
    """Create a test application instance backed by the in-memory DB."""
    from rubberband.config import settings
    from rubberband.main import create_app

    monkeypatch.setattr(settings, "supabase_service_role_key", SERVICE_KEY)
    _app = create_app()
    _app.state.backend = backend
    _app.state.notifier = notifier
    return _app


@pytest.fixture
async def client(app):
    """Async HTTP test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def session_of(auth) -> UserSessionContext:
    """Build a user session context from an ``AuthSession``."""
    return UserSessionContext(user_id=auth.user.id, email=auth.user.email, access_token=auth.access_token)


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Failure-injecting backend
# ---------------------------------------------------------------------------

class RecordingBackend(SqlBackend):
    """SqlBackend that records the workflow calls and fails the ones named in ``failures``.

    ``failures`` maps a method name to the exception it should raise, or to a
    plain return value (used to make ``delete_user_account`` return False).
    """

    def __init__(self, *args, failures: dict | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.failures = failures or {}
        self.calls: list[str] = []

    def _enter(self, name: str):
        self.calls.append(name)
        outcome = self.failures.get(name)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def create_identity(self, email, password):
        self._enter("create_identity")
        return await super().create_identity(email, password)

    async def create_organization(self, ctx, name):
        self._enter("create_organization")
        return await super().create_organization(ctx, name)

    async def create_role_binding(self, ctx, user_id, organization_id, role):
        self._enter("create_role_binding")
        return await super().create_role_binding(ctx, user_id, organization_id, role)

    async def create_profile(self, ctx, user_id, email):
        self._enter("create_profile")
        return await super().create_profile(ctx, user_id, email)

    async def create_organization_settings(self, ctx, organization_id, has_completed_onboarding=False):
        self._enter("create_organization_settings")
        return await super().create_organization_settings(ctx, organization_id, has_completed_onboarding)

    async def list_identities(self, admin, page=1, per_page=50):
        self._enter("list_identities")
        return await super().list_identities(admin, page, per_page)

    async def delete_user_account(self, ctx, user_id):
        outcome = self._enter("delete_user_account")
        if outcome is not None:
            return outcome
        return await super().delete_user_account(ctx, user_id)

    async def delete_identity(self, admin, user_id):
        self._enter("delete_identity")
        return await super().delete_identity(admin, user_id)


@pytest.fixture
def make_backend(session_factory):
    """Factory for a ``RecordingBackend`` sharing the test database."""

    def _make(failures: dict | None = None, emulate_triggers: bool = False) -> RecordingBackend:
        return RecordingBackend(
            session_factory,
            service_role_key=SERVICE_KEY,
            emulate_triggers=emulate_triggers,
            failures=failures,
        )

    return _make


async def count_rows(session_factory, model, **filters) -> int:
    """Count rows of ``model`` matching equality ``filters`` in a short-lived session."""
    from sqlalchemy import func, select

    stmt = select(func.count()).select_from(model)
    for column, value in filters.items():
        stmt = stmt.where(getattr(model, column) == value)
    async with session_factory() as session:
        return (await session.execute(stmt)).scalar_one()
