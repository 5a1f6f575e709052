import os
from typing import AsyncGenerator

# Settings are read at import time, so test defaults must be in place first.
from dotenv import load_dotenv

env_test_path = os.path.join(os.path.dirname(__file__), "..", ".env.test")
if os.path.exists(env_test_path):
    load_dotenv(env_test_path, override=False)

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./ledger-test.db")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("CUSTODY_PROVIDER", "sandbox")
os.environ.setdefault("CUSTODY_WEBHOOK_SECRET", "test-webhook-secret")
os.environ["NOTIFICATIONS_ENABLED"] = "false"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from libs.auth.dependencies import get_current_user
from libs.auth.models import ROLE_INVESTOR, AuthUser
from libs.common.config import get_settings
from libs.db.base import Base
from libs.db.session import get_async_db

# Import all models so metadata includes every table
from libs.audit import models as _audit_models  # noqa: F401
from services.ownership_service import models as _ownership_models  # noqa: F401
from services.payouts_service import models as _payout_models  # noqa: F401
from services.payouts_service.services.custody import (
    SandboxProvider,
    get_custody_provider,
)
from services.revenue_service import models as _revenue_models  # noqa: F401
from services.wallet_service import models as _wallet_models  # noqa: F401

settings = get_settings()

WEBHOOK_SECRET = settings.CUSTODY_WEBHOOK_SECRET


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """
    Fresh database per test.

    SQLite file under tmp_path by default (a file, not :memory:, so that
    concurrent sessions get their own connections). Set TEST_DATABASE_URL to
    run against PostgreSQL instead.
    """
    db_url = os.environ.get("TEST_DATABASE_URL")
    if db_url:
        engine = create_async_engine(db_url, future=True)
    else:
        engine = create_async_engine(
            f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}",
            future=True,
            connect_args={"timeout": 30},
        )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    """Sessions configured like the application's AsyncSessionLocal."""
    return async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    session = session_factory()
    try:
        yield session
    finally:
        await session.close()


@pytest.fixture
def provider() -> SandboxProvider:
    return SandboxProvider(webhook_secret=WEBHOOK_SECRET)


class AuthState:
    """The principal returned by the overridden ``get_current_user``."""

    def __init__(self):
        self.user = AuthUser(user_id="investor-1", role=ROLE_INVESTOR)

    def login(self, user_id: str = "investor-1", role: str = ROLE_INVESTOR) -> AuthUser:
        self.user = AuthUser(user_id=user_id, role=role)
        return self.user


@pytest.fixture
def auth() -> AuthState:
    return AuthState()


async def _client_for(app, db_session, auth, provider) -> AsyncGenerator[AsyncClient, None]:
    app.dependency_overrides[get_async_db] = lambda: db_session
    app.dependency_overrides[get_current_user] = lambda: auth.user
    app.dependency_overrides[get_custody_provider] = lambda: provider

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def wallet_client(db_session, auth, provider):
    from services.wallet_service.app.main import app

    async for ac in _client_for(app, db_session, auth, provider):
        yield ac


@pytest_asyncio.fixture
async def ownership_client(db_session, auth, provider):
    from services.ownership_service.app.main import app

    async for ac in _client_for(app, db_session, auth, provider):
        yield ac


@pytest_asyncio.fixture
async def revenue_client(db_session, auth, provider):
    from services.revenue_service.app.main import app

    async for ac in _client_for(app, db_session, auth, provider):
        yield ac


@pytest_asyncio.fixture
async def payouts_client(db_session, auth, provider):
    from services.payouts_service.app.main import app

    async for ac in _client_for(app, db_session, auth, provider):
        yield ac
