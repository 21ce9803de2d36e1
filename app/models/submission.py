from sqlalchemy import Boolean, Column, Integer, String, ForeignKey

from app.database import Base


class Submission(Base):
    """One judged attempt at a task. Rows are never replaced."""

    __tablename__ = "submissions"

    id = Column(String, primary_key=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    group_id = Column(String, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True)
    task_id = Column(Integer, ForeignKey("tasks.id"), nullable=False)
    photo_id = Column(String, ForeignKey("photos.id", ondelete="CASCADE"), nullable=False)
    total_score = Column(Integer, nullable=False, default=0)
    score_breakdown = Column(String, nullable=False)
    ai_comment = Column(String, nullable=False)
    valid = Column(Boolean, nullable=False, default=False)
    submitted_at = Column(String, nullable=False)
