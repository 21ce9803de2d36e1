from sqlalchemy import Column, String, ForeignKey, UniqueConstraint

from app.database import Base


class SubmissionReaction(Base):
    __tablename__ = "submission_reactions"
    __table_args__ = (
        UniqueConstraint("submission_id", "user_id", "emoji", name="uq_submission_reactions_triple"),
    )

    id = Column(String, primary_key=True)
    submission_id = Column(
        String, ForeignKey("submissions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    emoji = Column(String, nullable=False)
    created_at = Column(String, nullable=False)


class SubmissionReactionEvent(Base):
    """Audit ledger of reaction changes.

    No foreign keys: events outlive the submissions and users they mention.
    """

    __tablename__ = "submission_reaction_events"

    id = Column(String, primary_key=True)
    submission_id = Column(String, nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    emoji = Column(String, nullable=False)
    action = Column(String, nullable=False)
    created_at = Column(String, nullable=False, index=True)
