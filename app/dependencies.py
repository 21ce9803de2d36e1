from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.schemas.auth import AuthIdentity
from app.services.session_store import resolve_identity, validate_session
from app.utils.exceptions import Forbidden, Unauthenticated


async def verify_api_key(x_api_key: str = Header(default="")) -> None:
    if not settings.api_key:
        return
    if x_api_key != settings.api_key:
        raise HTTPException(status_code=403, detail="Invalid or missing API key")


async def get_optional_identity(
    request: Request, db: AsyncSession = Depends(get_db)
) -> AuthIdentity | None:
    token = request.cookies.get(settings.session_cookie_name)
    if not token:
        return None

    session = await validate_session(db, token)
    if session is None:
        return None
    return await resolve_identity(db, session)


async def get_current_identity(
    identity: AuthIdentity | None = Depends(get_optional_identity),
) -> AuthIdentity:
    if identity is None:
        raise Unauthenticated("Unauthorized")
    return identity


async def require_admin(identity: AuthIdentity = Depends(get_current_identity)) -> AuthIdentity:
    if not identity.is_admin:
        raise Forbidden("Admin privileges required")
    return identity
