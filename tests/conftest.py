"""Shared test fixtures."""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from agencyflow.config import settings
from agencyflow.db.base import Base
# Import all models to register with Base.metadata
import agencyflow.db.models  # noqa: F401
from agencyflow.db.models.project import ProjectMemberRow, ProjectRow
from agencyflow.models.actor import Actor
from agencyflow.services.id_generator import generate_id

PM = Actor("u_pm", "project_manager")
DESIGNER = Actor("u_designer", "designer")
DEVELOPER = Actor("u_dev", "developer")
LEAD = Actor("u_lead", "team_lead")
CLIENT = Actor("u_client", "client")
ADMIN = Actor("u_admin", "admin")
OUTSIDER = Actor("u_outsider", "developer")


def make_token(user_id: str, role: str, **claims) -> str:
    """Mint an access token the way the identity provider would."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "role": role,
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "iat": now,
        "exp": now + timedelta(minutes=15),
        **claims,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def auth_headers(actor: Actor) -> dict:
    return {"Authorization": f"Bearer {make_token(actor.id, actor.role)}"}


async def _create_schema(engine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture
async def db_engine():
    """Create an in-memory SQLite async engine for testing."""
    engine = create_async_engine("sqlite+aiosqlite:///", echo=False)
    await _create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
async def file_engine(tmp_path):
    """File-backed SQLite engine; every session gets its own connection."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'agencyflow.db'}", echo=False)
    await _create_schema(engine)
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
async def project(db_session):
    """A project in design managed by PM, with a client reviewer and three members."""
    row = ProjectRow(
        project_id=generate_id("proj_"),
        name="Website relaunch",
        manager_id=PM.id,
        client_id=CLIENT.id,
        reviewer_id=CLIENT.id,
        current_phase="design",
        status="active",
        progress=0,
    )
    db_session.add(row)
    await db_session.flush()
    db_session.add_all(
        [
            ProjectMemberRow(project_id=row.project_id, user_id=DESIGNER.id, role="designer"),
            ProjectMemberRow(project_id=row.project_id, user_id=DEVELOPER.id, role="developer"),
            ProjectMemberRow(
                project_id=row.project_id, user_id=LEAD.id, role="team_lead", notify_phase_changes=False
            ),
        ]
    )
    await db_session.commit()
    return row


@pytest.fixture
def app(db_engine, session_factory):
    """Create a test application instance with in-memory DB."""
    from agencyflow.main import create_app

    _app = create_app()
    _app.state.db_engine = db_engine
    _app.state.db_session_factory = session_factory
    return _app


@pytest.fixture
async def client(app):
    """Async HTTP test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
