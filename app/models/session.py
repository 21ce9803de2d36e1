from sqlalchemy import Column, String, ForeignKey

from app.database import Base


class Session(Base):
    __tablename__ = "sessions"

    id = Column(String, primary_key=True)
    user_id = Column(String, ForeignKey("auth_users.id", ondelete="CASCADE"), nullable=False)
    secret_hash = Column(String, nullable=False)
    created_at = Column(String, nullable=False)
