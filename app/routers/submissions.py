from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_identity
from app.schemas.auth import AuthIdentity
from app.schemas.submission import SubmissionCreate, SubmissionResponse
from app.services import submission_service
from app.services.judge import OpenAIJudge, get_judge
from app.services.storage import ObjectStore, get_object_store
from app.utils.response import success_response

router = APIRouter(prefix="/submissions", tags=["submissions"])


@router.post("", status_code=201)
async def create_submission(
    payload: SubmissionCreate,
    identity: AuthIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
    judge: OpenAIJudge = Depends(get_judge),
    store: ObjectStore = Depends(get_object_store),
):
    submission = await submission_service.submit(
        db,
        identity,
        task_id=payload.task_id,
        photo_id=payload.photo_id,
        group_id=payload.group_id,
        judge=judge,
        store=store,
    )
    data = SubmissionResponse.model_validate(submission_service.submission_to_dict(submission))
    return success_response(data=data.model_dump())


@router.get("")
async def group_feed(
    group_id: str = Query(...),
    valid_only: bool = Query(default=False),
    identity: AuthIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    feed = await submission_service.list_group_feed(db, identity, group_id, valid_only=valid_only)
    return success_response(data=feed)


@router.get("/leaderboard")
async def leaderboard(
    group_id: str = Query(...),
    identity: AuthIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    data = await submission_service.group_leaderboard(db, identity, group_id)
    return success_response(data=data)


@router.delete("/{submission_id}")
async def delete_submission(
    submission_id: str,
    identity: AuthIdentity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    await submission_service.delete_submission(db, identity, submission_id)
    return success_response(message="Submission deleted")
