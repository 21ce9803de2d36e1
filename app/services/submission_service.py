import json
import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.photo import Photo
from app.models.submission import Submission
from app.models.task import Task, TaskGroup
from app.models.user import User
from app.schemas.auth import AuthIdentity
from app.services.group_access import require_group_access
from app.services.judge import build_judge_prompt
from app.services.reactions import summarize_reactions
from app.services.scoring import ScoreResult, failure_result, normalize_judge_response, parse_score_breakdown
from app.services.storage import ObjectStore
from app.utils.exceptions import Forbidden, InvalidInput, NotFound, ScoringUnavailable

logger = logging.getLogger(__name__)


def submission_to_dict(submission: Submission) -> dict:
    return {
        "id": submission.id,
        "user_id": submission.user_id,
        "group_id": submission.group_id,
        "task_id": submission.task_id,
        "photo_id": submission.photo_id,
        "total_score": submission.total_score or 0,
        "score_breakdown": parse_score_breakdown(submission.score_breakdown).to_dict(),
        "ai_comment": submission.ai_comment,
        "valid": bool(submission.valid),
        "submitted_at": submission.submitted_at,
    }


async def _score_photo(task: Task, photo: Photo, judge, store: ObjectStore) -> ScoreResult:
    """Fetch, judge and normalize. Every failure is handled the same way."""
    try:
        image_bytes = await store.get(store.key_from_url(photo.file_path))
        raw = await judge.judge(image_bytes, build_judge_prompt(task))
        return normalize_judge_response(raw)
    except Exception as e:
        logger.warning("Scoring failed for photo %s on task %s: %s", photo.id, task.id, e)
        if not settings.record_failed_judgements:
            raise ScoringUnavailable("Scoring is temporarily unavailable, please try again") from e
        return failure_result()


async def submit(
    db: AsyncSession,
    identity: AuthIdentity,
    task_id: int,
    photo_id: str,
    group_id: str,
    judge,
    store: ObjectStore,
) -> Submission:
    """Judge a photo against a task and record the attempt.

    Checks run in a fixed order and each fails on its own: group access,
    photo exists, task exists, task assigned to the group, photo ownership.
    Nothing external is called until all of them pass, and nothing is
    written until a score outcome exists.
    """
    await require_group_access(db, identity, group_id)

    photo = await db.get(Photo, photo_id)
    if photo is None:
        raise NotFound("Photo not found", code="photo_not_found")

    task = await db.get(Task, task_id)
    if task is None:
        raise NotFound("Task not found", code="task_not_found")

    assignment = await db.execute(
        select(TaskGroup.id)
        .where(TaskGroup.task_id == task_id, TaskGroup.group_id == group_id)
        .limit(1)
    )
    if assignment.first() is None:
        raise InvalidInput("Task is not assigned to this group", code="task_not_assigned")

    if photo.user_id != identity.user_id:
        raise Forbidden("You do not own this photo", code="not_photo_owner")

    score = await _score_photo(task, photo, judge, store)

    submission = Submission(
        id=str(uuid.uuid4()),
        user_id=identity.user_id,
        group_id=group_id,
        task_id=task_id,
        photo_id=photo_id,
        total_score=score.total_score,
        score_breakdown=json.dumps(score.breakdown.to_dict()),
        ai_comment=score.ai_comment,
        valid=score.is_approved,
        submitted_at=datetime.now(timezone.utc).isoformat(),
    )
    db.add(submission)
    await db.commit()

    logger.info(
        "Submission created id=%s user=%s group=%s task=%s valid=%s score=%d",
        submission.id, submission.user_id, group_id, task_id, submission.valid, submission.total_score,
    )
    return submission


async def list_group_feed(
    db: AsyncSession, identity: AuthIdentity, group_id: str, valid_only: bool = False
) -> list[dict]:
    await require_group_access(db, identity, group_id)

    query = (
        select(Submission, Task.description, User.display_name, Photo.file_path)
        .join(Task, Task.id == Submission.task_id)
        .join(User, User.id == Submission.user_id)
        .join(Photo, Photo.id == Submission.photo_id)
        .where(Submission.group_id == group_id)
        .order_by(Submission.submitted_at.desc())
    )
    if valid_only:
        query = query.where(Submission.valid.is_(True))

    rows = (await db.execute(query)).all()
    summaries = await summarize_reactions(db, [row.Submission.id for row in rows], identity.user_id)

    feed = []
    for row, summary in zip(rows, summaries):
        item = submission_to_dict(row.Submission)
        item.update({
            "task_description": row.description,
            "user_name": row.display_name,
            "image_path": row.file_path,
            "reactions": summary["reactions"],
            "viewer_reaction_emojis": summary["viewer_reactions"],
            "available_reaction_emojis": summary["available_emojis"],
        })
        feed.append(item)
    return feed


async def group_leaderboard(db: AsyncSession, identity: AuthIdentity, group_id: str) -> list[dict]:
    """Rank members by completed tasks, counting each task once at its best score."""
    await require_group_access(db, identity, group_id)

    best_per_task = (
        select(
            Submission.user_id.label("user_id"),
            Submission.task_id.label("task_id"),
            func.max(Submission.total_score).label("best_score"),
        )
        .where(Submission.group_id == group_id, Submission.valid.is_(True))
        .group_by(Submission.user_id, Submission.task_id)
        .subquery()
    )

    tasks_completed = func.count(best_per_task.c.task_id).label("tasks_completed")
    total_score = func.sum(best_per_task.c.best_score).label("total_score")
    result = await db.execute(
        select(User.id, User.display_name, tasks_completed, total_score)
        .join(best_per_task, best_per_task.c.user_id == User.id)
        .group_by(User.id, User.display_name)
        .order_by(tasks_completed.desc(), total_score.desc(), User.display_name)
    )

    return [
        {
            "user_id": row.id,
            "name": row.display_name,
            "tasks_completed": row.tasks_completed,
            "total_score": int(row.total_score or 0),
        }
        for row in result.all()
    ]


async def delete_submission(db: AsyncSession, identity: AuthIdentity, submission_id: str) -> None:
    submission = await db.get(Submission, submission_id)
    if submission is None:
        raise NotFound("Submission not found", code="submission_not_found")

    await require_group_access(db, identity, submission.group_id)
    if submission.user_id != identity.user_id and not identity.is_admin:
        raise Forbidden("You can only delete your own submissions")

    await db.execute(delete(Submission).where(Submission.id == submission_id))
    await db.commit()
    logger.info("Submission %s deleted by %s", submission_id, identity.user_id)
