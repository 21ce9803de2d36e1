from app.models.user import User, AuthUser
from app.models.session import Session
from app.models.group import Group, UserGroup
from app.models.task import Task, TaskGroup
from app.models.photo import Photo
from app.models.submission import Submission
from app.models.reaction import SubmissionReaction, SubmissionReactionEvent

__all__ = [
    "User",
    "AuthUser",
    "Session",
    "Group",
    "UserGroup",
    "Task",
    "TaskGroup",
    "Photo",
    "Submission",
    "SubmissionReaction",
    "SubmissionReactionEvent",
]
