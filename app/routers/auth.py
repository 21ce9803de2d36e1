import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.dependencies import get_current_identity
from app.models.user import AuthUser, User
from app.schemas.auth import AuthIdentity, LoginRequest, LoginResponse, RegisterRequest
from app.services.security import hash_password, verify_password
from app.services.session_store import create_session, delete_session, session_ttl, validate_session
from app.utils.exceptions import AppException, Conflict
from app.utils.response import success_response

router = APIRouter(prefix="/auth", tags=["auth"])


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        settings.session_cookie_name,
        token,
        max_age=int(session_ttl().total_seconds()),
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
        path="/",
    )


@router.post("/register", status_code=201)
async def register(request: RegisterRequest, response: Response, db: AsyncSession = Depends(get_db)):
    display_name = request.username.strip()
    username = display_name.lower()

    result = await db.execute(select(AuthUser).where(AuthUser.username == username))
    if result.scalars().first() is not None:
        raise Conflict("This name is already taken", code="name_taken")

    result = await db.execute(select(User).where(User.display_name == display_name))
    if result.scalars().first() is not None:
        raise Conflict("This name is already taken", code="name_taken")

    profile = User(
        id=str(uuid.uuid4()),
        display_name=display_name,
        is_admin=False,
        created_at=datetime.now(timezone.utc).isoformat(),
    )
    auth_user = AuthUser(
        id=str(uuid.uuid4()),
        username=username,
        password_hash=hash_password(request.password),
        user_id=profile.id,
    )
    try:
        db.add(profile)
        await db.flush()
        db.add(auth_user)
        await db.commit()
    except IntegrityError as e:
        # Lost a race with a concurrent registration of the same name.
        await db.rollback()
        raise Conflict("This name is already taken", code="name_taken") from e

    _, token = await create_session(db, auth_user.id)
    _set_session_cookie(response, token)

    return success_response(
        data=LoginResponse(user_id=profile.id, display_name=profile.display_name, is_admin=False).model_dump()
    )


@router.post("/login")
async def login(request: LoginRequest, response: Response, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(AuthUser).where(AuthUser.username == request.username.strip().lower()))
    auth_user = result.scalars().first()

    if auth_user is None:
        raise AppException("Invalid credentials", status_code=400, code="invalid_credentials")

    if not verify_password(request.password, auth_user.password_hash):
        raise AppException("Invalid credentials", status_code=400, code="invalid_credentials")

    profile = await db.get(User, auth_user.user_id)
    if profile is None:
        raise AppException("Invalid credentials", status_code=400, code="invalid_credentials")

    _, token = await create_session(db, auth_user.id)
    _set_session_cookie(response, token)

    return success_response(
        data=LoginResponse(
            user_id=profile.id,
            display_name=profile.display_name,
            is_admin=bool(profile.is_admin),
        ).model_dump()
    )


@router.post("/logout")
async def logout(request: Request, response: Response, db: AsyncSession = Depends(get_db)):
    token = request.cookies.get(settings.session_cookie_name)
    if token:
        session = await validate_session(db, token)
        if session is not None:
            await delete_session(db, session.id)

    response.delete_cookie(settings.session_cookie_name, path="/")
    return success_response(message="Logged out")


@router.get("/me")
async def me(identity: AuthIdentity = Depends(get_current_identity)):
    return success_response(data=identity.model_dump())
