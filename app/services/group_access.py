"""Single authorization check for group-scoped data.

Every endpoint that reads or writes submissions or reactions goes through
``require_group_access``; nothing else queries memberships for authorization.
"""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.group import UserGroup
from app.schemas.auth import AuthIdentity
from app.utils.exceptions import Forbidden


async def ensure_group_access(db: AsyncSession, identity: AuthIdentity | None, group_id: str) -> bool:
    if identity is not None and identity.is_admin:
        return True
    if identity is None or not identity.user_id:
        return False

    result = await db.execute(
        select(UserGroup.id)
        .where(UserGroup.user_id == identity.user_id, UserGroup.group_id == group_id)
        .limit(1)
    )
    return result.first() is not None


async def require_group_access(db: AsyncSession, identity: AuthIdentity | None, group_id: str) -> None:
    if not await ensure_group_access(db, identity, group_id):
        raise Forbidden("You are not a member of this group")
