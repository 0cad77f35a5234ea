"""Shared fixtures: in-memory SQLite, fake redis, and an ASGI client against the app."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")
os.environ["ENVIRONMENT"] = "development"
os.environ["JWT_SECRET"] = "test-access-secret-0123456789abcdef"
os.environ["REFRESH_TOKEN_SECRET"] = "test-refresh-secret-0123456789abcdef"
os.environ["APP_ENCRYPTION_KEY"] = "0123456789abcdef0123456789abcdef"

import pytest
from fakeredis import FakeAsyncRedis, FakeServer
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.database import Base, get_db
from app.core.redis_client import get_redis
from app.core.security import create_access_token, get_password_hash
from app.models import Folder, Note, User
from app.services.public_share import generate_share_token
from main import create_app

PASSWORD = "correct-horse-battery"
_password_hash = None


def password_hash() -> str:
    global _password_hash
    if _password_hash is None:
        _password_hash = get_password_hash(PASSWORD)
    return _password_hash


def bearer(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user)}"}


@pytest.fixture
def auth_headers():
    return bearer


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def redis_client():
    client = FakeAsyncRedis(server=FakeServer(), decode_responses=True)
    yield client
    await client.aclose()


@pytest.fixture
def app(session_factory, redis_client):
    application = create_app()

    async def override_get_db():
        async with session_factory() as session:
            yield session

    async def override_get_redis():
        return redis_client

    application.dependency_overrides[get_db] = override_get_db
    application.dependency_overrides[get_redis] = override_get_redis
    return application


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def create_user(db):
    async def _create(email: str, is_active: bool = True) -> User:
        user = User(email=email, hashed_password=password_hash(), is_active=is_active)
        db.add(user)
        await db.commit()
        await db.refresh(user)
        return user
    return _create


@pytest.fixture
def create_folder(db):
    async def _create(owner: User, name: str = "Folder", parent: Folder = None, is_public: bool = False) -> Folder:
        folder = Folder(
            name=name,
            owner_id=owner.id,
            parent_id=parent.id if parent else None,
            is_public=is_public,
            public_share_token=generate_share_token() if is_public else None,
        )
        db.add(folder)
        await db.commit()
        await db.refresh(folder)
        return folder
    return _create


@pytest.fixture
def create_note(db):
    async def _create(owner: User, title: str = "Note", folder: Folder = None, is_public: bool = False,
                      content: str = "# hello") -> Note:
        note = Note(
            title=title,
            content_markdown=content,
            owner_id=owner.id,
            folder_id=folder.id if folder else None,
            is_public=is_public,
            public_share_token=generate_share_token() if is_public else None,
        )
        db.add(note)
        await db.commit()
        await db.refresh(note)
        return note
    return _create


@pytest.fixture
async def owner(create_user):
    return await create_user("owner@example.com")


@pytest.fixture
async def bob(create_user):
    return await create_user("bob@example.com")


@pytest.fixture
async def carol(create_user):
    return await create_user("carol@example.com")
