from sqlalchemy import Boolean, Column, String, ForeignKey

from app.database import Base


class User(Base):
    """Player profile. ``is_admin`` is the only runtime admin authority."""

    __tablename__ = "users"

    id = Column(String, primary_key=True)
    display_name = Column(String, nullable=False, unique=True)
    is_admin = Column(Boolean, nullable=False, default=False)
    created_at = Column(String, nullable=False)


class AuthUser(Base):
    __tablename__ = "auth_users"

    id = Column(String, primary_key=True)
    username = Column(String, nullable=False, unique=True)
    password_hash = Column(String, nullable=False)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
