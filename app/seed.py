import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.group import Group, UserGroup
from app.models.task import Task, TaskGroup
from app.models.user import AuthUser, User
from app.services.security import hash_password

logger = logging.getLogger(__name__)


def _seed_id(name: str) -> str:
    return str(uuid.uuid5(uuid.NAMESPACE_DNS, name))


SEED_GROUP_ID = _seed_id("group-hunters")
SEED_OTHER_GROUP_ID = _seed_id("group-night-owls")

SEED_GROUPS = [
    {"id": SEED_GROUP_ID, "name": "Hunters", "description": "Default scavenger hunt group"},
    {"id": SEED_OTHER_GROUP_ID, "name": "Night Owls", "description": "After-dark hunt"},
]

SEED_TASKS = [
    {"id": 1, "description": "Find a snowman", "ai_prompt": "a snowman", "groups": [SEED_GROUP_ID]},
    {"id": 2, "description": "Something red and festive", "ai_prompt": "a red festive object", "groups": [SEED_GROUP_ID]},
    {"id": 3, "description": "Catch the sunrise", "ai_prompt": "a sunrise over a horizon", "groups": [SEED_OTHER_GROUP_ID]},
]

SEED_USERS = [
    {"username": "hunter", "password": "hunter-password", "is_admin": False, "groups": [SEED_GROUP_ID]},
    {"username": "rival", "password": "rival-password", "is_admin": False, "groups": [SEED_GROUP_ID]},
    {"username": "huntmaster", "password": "huntmaster-password", "is_admin": True, "groups": []},
]

SEED_USER_ID = _seed_id("user-hunter")
SEED_RIVAL_ID = _seed_id("user-rival")
SEED_ADMIN_ID = _seed_id("user-huntmaster")


async def apply_admin_allowlist(session: AsyncSession) -> None:
    """Promote configured usernames to admin by setting the persisted flag."""
    usernames = [u.strip().lower() for u in settings.admin_usernames if u.strip()]
    if not usernames:
        return

    profile_ids = select(AuthUser.user_id).where(AuthUser.username.in_(usernames))
    result = await session.execute(
        update(User).where(User.id.in_(profile_ids), User.is_admin.is_(False)).values(is_admin=True)
    )
    await session.commit()
    if result.rowcount:
        logger.info("Promoted %d user(s) to admin from ADMIN_USERNAMES", result.rowcount)


async def seed_data(session: AsyncSession) -> None:
    result = await session.execute(select(Group).limit(1))
    if result.scalars().first() is None:
        now = datetime.now(timezone.utc).isoformat()

        for g in SEED_GROUPS:
            session.add(Group(created_at=now, **g))
        for t in SEED_TASKS:
            session.add(Task(id=t["id"], description=t["description"], ai_prompt=t["ai_prompt"], created_at=now))
        for u in SEED_USERS:
            session.add(User(
                id=_seed_id(f"user-{u['username']}"),
                display_name=u["username"],
                is_admin=u["is_admin"],
                created_at=now,
            ))
        # No relationship() on the models, so parents must be flushed first.
        await session.flush()

        for t in SEED_TASKS:
            for group_id in t["groups"]:
                session.add(TaskGroup(
                    id=_seed_id(f"task-group-{t['id']}-{group_id}"),
                    task_id=t["id"],
                    group_id=group_id,
                    created_at=now,
                ))

        for u in SEED_USERS:
            profile_id = _seed_id(f"user-{u['username']}")
            session.add(AuthUser(
                id=_seed_id(f"auth-{u['username']}"),
                username=u["username"],
                password_hash=hash_password(u["password"]),
                user_id=profile_id,
            ))
            for group_id in u["groups"]:
                session.add(UserGroup(
                    id=_seed_id(f"member-{u['username']}-{group_id}"),
                    user_id=profile_id,
                    group_id=group_id,
                    joined_at=now,
                ))

        await session.commit()

    await apply_admin_allowlist(session)
