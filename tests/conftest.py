import os
import tempfile

_TEST_DIR = tempfile.mkdtemp(prefix="scavenger-hunt-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_TEST_DIR, 'test.sqlite3')}"
os.environ["DATA_DIR"] = _TEST_DIR
os.environ["STORAGE_BACKEND"] = "local"
os.environ["API_KEY"] = ""
os.environ["OPENAI_API_KEY"] = ""

import asyncio  # noqa: E402
import uuid  # noqa: E402
from datetime import datetime, timezone  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy import select  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker  # noqa: E402

from app.services.storage import ObjectStore, ObjectStoreError  # noqa: E402


@pytest.fixture(autouse=True, scope="session")
def setup_test_db():
    from app.config import settings
    settings.api_key = ""
    settings.openai_api_key = ""

    from app.database import create_tables, async_session
    from app.seed import seed_data

    async def _setup():
        await create_tables()
        async with async_session() as session:
            await seed_data(session)

    asyncio.run(_setup())


@pytest_asyncio.fixture
async def db_session():
    from app.database import Base, enable_sqlite_foreign_keys
    from app import models  # noqa: F401

    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    enable_sqlite_foreign_keys(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_maker() as session:
        yield session
    await engine.dispose()


class FakeJudge:
    """Stands in for the OpenAI judge: returns a canned verdict or raises."""

    def __init__(self, payload=None, error: Exception | None = None, delay: float = 0):
        self.payload = payload if payload is not None else {
            "score": 82,
            "breakdown": {"accuracy": 42, "composition": 20, "vibe": 20},
            "is_approved": True,
            "comment": "A fine snowman.",
        }
        self.error = error
        self.delay = delay
        self.calls: list[tuple[bytes, str]] = []

    async def judge(self, image_bytes: bytes, prompt: str) -> dict:
        self.calls.append((image_bytes, prompt))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.payload


class FakeObjectStore(ObjectStore):
    def __init__(self):
        self.objects: dict[str, bytes] = {}

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        self.objects[key] = data
        return f"https://photos.test/{key}"

    async def get(self, key: str) -> bytes:
        if key not in self.objects:
            raise ObjectStoreError(f"Object not found: {key}")
        return self.objects[key]

    async def delete(self, key: str) -> None:
        self.objects.pop(key, None)


@pytest.fixture
def fake_judge():
    from app.main import app
    from app.services.judge import get_judge

    judge = FakeJudge()
    app.dependency_overrides[get_judge] = lambda: judge
    yield judge
    app.dependency_overrides.pop(get_judge, None)


@pytest.fixture
def fake_store():
    from app.main import app
    from app.services.storage import get_object_store

    store = FakeObjectStore()
    app.dependency_overrides[get_object_store] = lambda: store
    yield store
    app.dependency_overrides.pop(get_object_store, None)


@pytest.fixture
def login_as():
    """Open a real session for a seeded user and return the cookie dict."""
    from app.config import settings
    from app.database import async_session
    from app.models.user import AuthUser
    from app.services.session_store import create_session

    async def _login_as(username: str) -> dict:
        async with async_session() as db:
            result = await db.execute(select(AuthUser).where(AuthUser.username == username))
            auth_user = result.scalars().one()
            _, token = await create_session(db, auth_user.id)
        return {settings.session_cookie_name: token}

    return _login_as


@pytest.fixture
def make_photo(fake_store):
    """Insert a photo row owned by ``user_id`` with its bytes in the fake store."""
    from app.database import async_session
    from app.models.photo import Photo

    async def _make_photo(user_id: str) -> str:
        photo_id = str(uuid.uuid4())
        key = f"photos/{user_id}/{photo_id}.jpg"
        url = await fake_store.put(key, b"\xff\xd8\xff\xe0" + b"\x00" * 100, "image/jpeg")
        async with async_session() as db:
            db.add(Photo(
                id=photo_id,
                user_id=user_id,
                file_path=url,
                original_filename="test.jpg",
                content_type="image/jpeg",
                file_size=104,
                created_at=datetime.now(timezone.utc).isoformat(),
            ))
            await db.commit()
        return photo_id

    return _make_photo
