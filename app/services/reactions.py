"""Curated emoji reactions on submissions, with an append-only audit ledger."""
import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import and_, delete, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from app.config import settings
from app.database import insert_ignoring_conflicts
from app.models.reaction import SubmissionReaction, SubmissionReactionEvent
from app.models.submission import Submission
from app.models.task import Task
from app.models.user import User
from app.utils.exceptions import InvalidInput, UnsupportedReaction

logger = logging.getLogger(__name__)

REACTION_EMOJIS = ("🎉", "🔥", "💡", "😂", "❤️")

ACTION_ADD = "add"
ACTION_REMOVE = "remove"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def assert_supported_emoji(emoji: str) -> None:
    if emoji not in REACTION_EMOJIS:
        raise UnsupportedReaction(f"Unsupported reaction emoji: {emoji}")


async def _record_event(db: AsyncSession, submission_id: str, user_id: str, emoji: str, action: str) -> None:
    # The reaction itself is already committed; losing the audit row is logged, not raised.
    try:
        db.add(SubmissionReactionEvent(
            id=str(uuid.uuid4()),
            submission_id=submission_id,
            user_id=user_id,
            emoji=emoji,
            action=action,
            created_at=_now(),
        ))
        await db.commit()
    except SQLAlchemyError:
        logger.exception(
            "Failed to record reaction %s event for submission %s by %s", action, submission_id, user_id
        )
        await db.rollback()


async def add_reaction(db: AsyncSession, submission_id: str, user_id: str, emoji: str) -> bool:
    """Add a reaction. Returns False when it already existed (nothing is written)."""
    assert_supported_emoji(emoji)

    result = await db.execute(
        insert_ignoring_conflicts(db, SubmissionReaction).values(
            id=str(uuid.uuid4()),
            submission_id=submission_id,
            user_id=user_id,
            emoji=emoji,
            created_at=_now(),
        )
    )
    await db.commit()

    inserted = result.rowcount > 0
    if inserted:
        await _record_event(db, submission_id, user_id, emoji, ACTION_ADD)
    return inserted


async def remove_reaction(db: AsyncSession, submission_id: str, user_id: str, emoji: str) -> bool:
    """Remove a reaction. Returns False when there was nothing to remove."""
    assert_supported_emoji(emoji)

    result = await db.execute(
        delete(SubmissionReaction).where(
            SubmissionReaction.submission_id == submission_id,
            SubmissionReaction.user_id == user_id,
            SubmissionReaction.emoji == emoji,
        )
    )
    await db.commit()

    deleted = result.rowcount > 0
    if deleted:
        await _record_event(db, submission_id, user_id, emoji, ACTION_REMOVE)
    return deleted


def _emoji_order(emoji: str) -> int:
    try:
        return REACTION_EMOJIS.index(emoji)
    except ValueError:
        return len(REACTION_EMOJIS)


def _group_rows(rows, viewer_id: str | None, reactor_limit: int, reactors_key: str) -> dict:
    grouped: dict[str, dict] = {}
    viewer_reactions: list[str] = []

    for row in rows:
        entry = grouped.setdefault(row.emoji, {
            "emoji": row.emoji,
            "count": 0,
            "viewer_has_reacted": False,
            reactors_key: [],
        })
        entry["count"] += 1
        if len(entry[reactors_key]) < reactor_limit:
            entry[reactors_key].append({
                "user_id": row.user_id,
                "display_name": row.display_name or "Unknown",
                "reacted_at": row.created_at,
            })
        if viewer_id and row.user_id == viewer_id:
            entry["viewer_has_reacted"] = True
            viewer_reactions.append(row.emoji)

    return {
        "reactions": sorted(grouped.values(), key=lambda e: _emoji_order(e["emoji"])),
        "viewer_reactions": sorted(viewer_reactions, key=_emoji_order),
        "available_emojis": list(REACTION_EMOJIS),
    }


def _reaction_rows_query():
    return (
        select(
            SubmissionReaction.submission_id,
            SubmissionReaction.emoji,
            SubmissionReaction.user_id,
            SubmissionReaction.created_at,
            User.display_name,
        )
        .join(User, User.id == SubmissionReaction.user_id)
        .order_by(SubmissionReaction.submission_id, SubmissionReaction.created_at)
    )


async def summarize_reactions(
    db: AsyncSession, submission_ids: list[str], viewer_id: str | None
) -> list[dict]:
    """Reaction summaries for many submissions from a single query, in input order."""
    if not submission_ids:
        return []

    result = await db.execute(
        _reaction_rows_query().where(SubmissionReaction.submission_id.in_(set(submission_ids)))
    )
    rows_by_submission: dict[str, list] = {}
    for row in result.all():
        rows_by_submission.setdefault(row.submission_id, []).append(row)

    return [
        {
            "submission_id": submission_id,
            **_group_rows(
                rows_by_submission.get(submission_id, []),
                viewer_id,
                settings.reaction_sample_size,
                "sample_reactors",
            ),
        }
        for submission_id in submission_ids
    ]


async def build_reaction_detail(db: AsyncSession, submission_id: str, viewer_id: str | None) -> dict:
    result = await db.execute(
        _reaction_rows_query().where(SubmissionReaction.submission_id == submission_id)
    )
    return _group_rows(result.all(), viewer_id, settings.reaction_detail_limit, "reactors")


def _parse_cursor(cursor: str) -> tuple[str, str]:
    created_at, sep, event_id = cursor.rpartition("|")
    if not sep or not created_at or not event_id:
        raise InvalidInput("Malformed cursor")
    return created_at, event_id


async def list_reaction_events(
    db: AsyncSession,
    submission_id: str | None = None,
    reactor_id: str | None = None,
    action: str | None = None,
    emoji: str | None = None,
    cursor: str | None = None,
    per_page: int = 50,
) -> dict:
    """Page through the audit ledger, newest first."""
    submitter = aliased(User)
    reactor = aliased(User)

    query = (
        select(
            SubmissionReactionEvent.id,
            SubmissionReactionEvent.action,
            SubmissionReactionEvent.emoji,
            SubmissionReactionEvent.created_at,
            SubmissionReactionEvent.submission_id,
            SubmissionReactionEvent.user_id.label("reactor_id"),
            reactor.display_name.label("reactor_name"),
            Submission.user_id.label("submitter_id"),
            submitter.display_name.label("submitter_name"),
            Task.description.label("task_description"),
        )
        .outerjoin(Submission, Submission.id == SubmissionReactionEvent.submission_id)
        .outerjoin(Task, Task.id == Submission.task_id)
        .outerjoin(submitter, submitter.id == Submission.user_id)
        .outerjoin(reactor, reactor.id == SubmissionReactionEvent.user_id)
    )

    if submission_id:
        query = query.where(SubmissionReactionEvent.submission_id == submission_id)
    if reactor_id:
        query = query.where(SubmissionReactionEvent.user_id == reactor_id)
    if action in (ACTION_ADD, ACTION_REMOVE):
        query = query.where(SubmissionReactionEvent.action == action)
    if emoji:
        query = query.where(SubmissionReactionEvent.emoji == emoji)
    if cursor:
        cursor_created_at, cursor_id = _parse_cursor(cursor)
        query = query.where(or_(
            SubmissionReactionEvent.created_at < cursor_created_at,
            and_(
                SubmissionReactionEvent.created_at == cursor_created_at,
                SubmissionReactionEvent.id < cursor_id,
            ),
        ))

    per_page = max(1, min(per_page, 200))
    query = query.order_by(
        SubmissionReactionEvent.created_at.desc(), SubmissionReactionEvent.id.desc()
    ).limit(per_page + 1)

    rows = (await db.execute(query)).all()
    has_more = len(rows) > per_page
    rows = rows[:per_page]

    events = [dict(row._mapping) for row in rows]
    next_cursor = f"{rows[-1].created_at}|{rows[-1].id}" if has_more else None
    return {"events": events, "next_cursor": next_cursor}
