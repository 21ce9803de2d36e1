from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_identity, require_admin
from app.models.photo import Photo
from app.models.submission import Submission
from app.models.task import Task
from app.models.user import User
from app.schemas.auth import AuthIdentity
from app.schemas.reaction import ReactionRequest
from app.services import reactions
from app.services.group_access import require_group_access
from app.utils.exceptions import NotFound
from app.utils.response import success_response

router = APIRouter(tags=["reactions"])


async def _load_submission_with_access(db: AsyncSession, submission_id: str, identity: AuthIdentity) -> dict:
    result = await db.execute(
        select(
            Submission.id,
            Submission.group_id,
            Submission.user_id,
            Submission.valid,
            Submission.submitted_at,
            User.display_name.label("user_name"),
            Task.description.label("task_description"),
            Photo.file_path.label("image_path"),
        )
        .join(User, User.id == Submission.user_id)
        .join(Task, Task.id == Submission.task_id)
        .join(Photo, Photo.id == Submission.photo_id)
        .where(Submission.id == submission_id)
    )
    row = result.first()
    if row is None:
        raise NotFound("Submission not found", code="submission_not_found")

    await require_group_access(db, identity, row.group_id)

    submission = dict(row._mapping)
    submission["valid"] = bool(submission["valid"])
    return submission


@router.get("/submissions/{submission_id}/reactions")
async def get_reactions(
    submission_id: str,
    identity: AuthIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    submission = await _load_submission_with_access(db, submission_id, identity)
    detail = await reactions.build_reaction_detail(db, submission_id, identity.user_id)
    return success_response(data={"submission": submission, **detail})


@router.post("/submissions/{submission_id}/reactions")
async def add_reaction(
    submission_id: str,
    payload: ReactionRequest,
    identity: AuthIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    await _load_submission_with_access(db, submission_id, identity)
    await reactions.add_reaction(db, submission_id, identity.user_id, payload.emoji)
    detail = await reactions.build_reaction_detail(db, submission_id, identity.user_id)
    return success_response(data=detail)


@router.delete("/submissions/{submission_id}/reactions")
async def remove_reaction(
    submission_id: str,
    payload: ReactionRequest,
    identity: AuthIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    await _load_submission_with_access(db, submission_id, identity)
    await reactions.remove_reaction(db, submission_id, identity.user_id, payload.emoji)
    detail = await reactions.build_reaction_detail(db, submission_id, identity.user_id)
    return success_response(data=detail)


@router.get("/admin/reaction-events")
async def list_reaction_events(
    submission_id: str | None = Query(default=None),
    reactor_id: str | None = Query(default=None),
    action: str | None = Query(default=None),
    emoji: str | None = Query(default=None),
    cursor: str | None = Query(default=None),
    per_page: int = Query(default=50, ge=1, le=200),
    identity: AuthIdentity = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    data = await reactions.list_reaction_events(
        db,
        submission_id=submission_id,
        reactor_id=reactor_id,
        action=action,
        emoji=emoji,
        cursor=cursor,
        per_page=per_page,
    )
    return success_response(data=data)
