import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db, insert_ignoring_conflicts
from app.dependencies import get_current_identity
from app.models.group import Group, UserGroup
from app.schemas.auth import AuthIdentity
from app.utils.exceptions import Conflict, NotFound
from app.utils.response import success_response

router = APIRouter(prefix="/groups", tags=["groups"])


@router.post("/{group_id}/join", status_code=201)
async def join_group(
    group_id: str,
    identity: AuthIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    group = await db.get(Group, group_id)
    if group is None:
        raise NotFound("Group not found", code="group_not_found")

    result = await db.execute(
        insert_ignoring_conflicts(db, UserGroup).values(
            id=str(uuid.uuid4()),
            user_id=identity.user_id,
            group_id=group_id,
            joined_at=datetime.now(timezone.utc).isoformat(),
        )
    )
    await db.commit()
    if result.rowcount == 0:
        raise Conflict("Already a member of this group", code="already_member")

    return success_response(data={"group_id": group.id, "name": group.name})


@router.delete("/{group_id}/membership")
async def leave_group(
    group_id: str,
    identity: AuthIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    await db.execute(
        delete(UserGroup).where(UserGroup.user_id == identity.user_id, UserGroup.group_id == group_id)
    )
    await db.commit()
    return success_response(message="Left group")
