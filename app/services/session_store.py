"""Database-backed opaque session tokens.

A token is ``<session id>.<secret>``. The id is the row's primary key, so a
lookup never hashes client input against the table; only the secret's hash is
stored and it is compared in constant time.
"""
import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.session import Session
from app.models.user import AuthUser, User
from app.schemas.auth import AuthIdentity
from app.services.security import constant_time_equal, generate_secure_random_string, hash_secret

logger = logging.getLogger(__name__)

TOKEN_SEPARATOR = "."


def session_ttl() -> timedelta:
    return timedelta(days=settings.session_ttl_days)


async def create_session(db: AsyncSession, auth_user_id: str) -> tuple[str, str]:
    """Persist a new session and return ``(session_id, token)``."""
    session_id = generate_secure_random_string()
    secret = generate_secure_random_string()

    db.add(Session(
        id=session_id,
        user_id=auth_user_id,
        secret_hash=hash_secret(secret),
        created_at=datetime.now(timezone.utc).isoformat(),
    ))
    await db.commit()

    return session_id, f"{session_id}{TOKEN_SEPARATOR}{secret}"


async def validate_session(db: AsyncSession, token: str, now: datetime | None = None) -> Session | None:
    parts = token.split(TOKEN_SEPARATOR)
    if len(parts) != 2 or not all(parts):
        return None
    session_id, secret = parts

    result = await db.execute(select(Session).where(Session.id == session_id).limit(1))
    session = result.scalars().first()
    if session is None:
        return None

    now = now or datetime.now(timezone.utc)
    if now - datetime.fromisoformat(session.created_at) >= session_ttl():
        logger.info("Session %s expired, deleting", session.id)
        await delete_session(db, session.id)
        return None

    # A wrong secret leaves the row alone: a guess must not log the owner out.
    if not constant_time_equal(hash_secret(secret), session.secret_hash):
        return None

    return session


async def delete_session(db: AsyncSession, session_id: str) -> None:
    await db.execute(delete(Session).where(Session.id == session_id))
    await db.commit()


async def resolve_identity(db: AsyncSession, session: Session) -> AuthIdentity | None:
    """Hydrate a session row into the caller's identity.

    Sessions whose auth user or profile has disappeared are deleted.
    """
    auth_user = await db.get(AuthUser, session.user_id)
    profile = await db.get(User, auth_user.user_id) if auth_user else None
    if auth_user is None or profile is None:
        logger.warning("Session %s points at a missing user, deleting", session.id)
        await delete_session(db, session.id)
        return None

    return AuthIdentity(
        user_id=profile.id,
        auth_id=auth_user.id,
        display_name=profile.display_name,
        is_admin=bool(profile.is_admin),
    )
