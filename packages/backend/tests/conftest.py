"""Test fixtures — a fresh app and an in-memory database per test.

Learn: Testing pattern for async SQLAlchemy + FastAPI:

1. Each test gets its own in-memory SQLite engine (aiosqlite, StaticPool so
   every session shares the one connection) with the schema created
   from the ORM metadata.
2. Each test gets its own app from create_app(), so the subscriber
   registry and the view buffer start empty and never leak across tests.
3. get_db, get_session_factory and get_current_user are overridden; the
   signed-in user can be switched mid-test with ``login``.
"""

import pytest_asyncio
from fastapi import HTTPException
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from yumiso.api.deps import get_session_factory
from yumiso.auth.dependencies import CurrentIdentity, get_current_user
from yumiso.db.engine import get_db
from yumiso.db.models import (
    ROLE_CONTRIBUTOR,
    ROLE_VIEWER,
    Base,
    ListContributor,
    PlanContributor,
    Recipe,
    ShoppingList,
    User,
    WeeklyMealPlan,
    utcnow,
)
from yumiso.main import create_app
from yumiso.views.buffer import ViewBuffer

TEST_DB_URL = "sqlite+aiosqlite://"

OWNER = CurrentIdentity(user_id="u-owner", name="Camille", pseudo="Chef")
CONTRIBUTOR = CurrentIdentity(user_id="u-contrib", name="Sacha")
VIEWER = CurrentIdentity(user_id="u-viewer", name="Dominique")
STRANGER = CurrentIdentity(user_id="u-stranger")

PLAN_ID = 42
LIST_ID = 7
LINKED_LIST_ID = 8


@pytest_asyncio.fixture()
async def session_factory():
    engine = create_async_engine(
        TEST_DB_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture()
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture()
async def seed(db_session):
    """Users, a meal plan, a standalone list, a plan-linked list and recipes.

    Both plan 42 and list 7 are owned by OWNER, with CONTRIBUTOR as a
    writing contributor and VIEWER as a read-only one.
    """
    db_session.add_all([
        User(id=OWNER.user_id, name=OWNER.name, pseudo=OWNER.pseudo),
        User(id=CONTRIBUTOR.user_id, name=CONTRIBUTOR.name),
        User(id=VIEWER.user_id, name=VIEWER.name),
        User(id=STRANGER.user_id),
    ])
    await db_session.flush()

    db_session.add_all([
        WeeklyMealPlan(id=PLAN_ID, name="Semaine 12", user_id=OWNER.user_id),
        ShoppingList(id=LIST_ID, name="Courses", user_id=OWNER.user_id),
    ])
    await db_session.flush()

    db_session.add_all([
        ShoppingList(
            id=LINKED_LIST_ID,
            name="Courses semaine 12",
            user_id=OWNER.user_id,
            weekly_meal_plan_id=PLAN_ID,
        ),
        PlanContributor(
            weekly_meal_plan_id=PLAN_ID, user_id=CONTRIBUTOR.user_id, role=ROLE_CONTRIBUTOR
        ),
        PlanContributor(
            weekly_meal_plan_id=PLAN_ID, user_id=VIEWER.user_id, role=ROLE_VIEWER
        ),
        ListContributor(
            shopping_list_id=LIST_ID, user_id=CONTRIBUTOR.user_id, role=ROLE_CONTRIBUTOR
        ),
        ListContributor(
            shopping_list_id=LIST_ID, user_id=VIEWER.user_id, role=ROLE_VIEWER
        ),
        Recipe(id=5, slug="ratatouille", name="Ratatouille", views_count=10),
        Recipe(id=7, slug="quiche-lorraine", name="Quiche lorraine", views_count=0),
        Recipe(
            id=9, slug="old-recipe", name="Old recipe", views_count=3, deleted_at=utcnow()
        ),
    ])
    await db_session.commit()
    # Tests read through the same session; start them from a clean identity map
    db_session.expunge_all()


class Login:
    """Switchable identity returned by the get_current_user override."""

    def __init__(self, identity: CurrentIdentity | None = OWNER):
        self.identity = identity

    def __call__(self, identity: CurrentIdentity | None) -> None:
        self.identity = identity


@pytest_asyncio.fixture()
async def app(session_factory):
    application = create_app()
    application.state.view_buffer = ViewBuffer(session_factory)
    return application


@pytest_asyncio.fixture()
async def login():
    return Login()


@pytest_asyncio.fixture()
async def client(app, db_session, session_factory, login):
    """HTTP client with get_db, the stream session factory and auth overridden."""

    async def override_get_db():
        yield db_session

    def override_get_current_user():
        if login.identity is None:
            raise HTTPException(status_code=401, detail="Authentication required")
        return login.identity

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_current_user] = override_get_current_user

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def unauthenticated_client(app, db_session, session_factory):
    """HTTP client WITHOUT the auth override — real bearer-token checks."""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
