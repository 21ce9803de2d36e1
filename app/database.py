import os

from sqlalchemy import event
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from app.config import settings


def _get_database_url() -> str:
    url = settings.database_url
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql+asyncpg://", 1)
    elif url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def _is_sqlite() -> bool:
    return settings.database_url.startswith("sqlite")


_database_url = _get_database_url()

_engine_kwargs: dict = {"echo": False}
if _is_sqlite():
    # SQLite files are cheap to open; a fresh connection per checkout keeps
    # connections from outliving the event loop that opened them.
    _engine_kwargs.update(poolclass=NullPool, connect_args={"timeout": 30})
else:
    _engine_kwargs.update(pool_size=5, max_overflow=10, pool_pre_ping=True)

engine = create_async_engine(_database_url, **_engine_kwargs)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def _set_sqlite_pragma(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def enable_sqlite_foreign_keys(async_engine) -> None:
    """SQLite leaves foreign keys off unless each connection turns them on."""
    event.listen(async_engine.sync_engine, "connect", _set_sqlite_pragma)


if _is_sqlite():
    enable_sqlite_foreign_keys(engine)


class Base(DeclarativeBase):
    pass


def insert_ignoring_conflicts(db: AsyncSession, model):
    """Build an INSERT that silently skips rows violating a unique constraint.

    Callers read ``result.rowcount`` to learn whether a row was written.
    """
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model).on_conflict_do_nothing()
    if dialect == "sqlite":
        return sqlite.insert(model).on_conflict_do_nothing()
    raise NotImplementedError(f"Conflict-tolerant insert not supported on {dialect}")


async def create_tables():
    if _is_sqlite():
        db_path = _database_url.split(":///", 1)[-1]
        if db_path and db_path != ":memory:":
            os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
    async with engine.begin() as conn:
        from app.models import user, session, group, task, photo, submission, reaction  # noqa: F401
        await conn.run_sync(Base.metadata.create_all)


async def get_db():
    async with async_session() as session:
        yield session
