from sqlalchemy import Column, String, Integer
from sqlalchemy import ForeignKey

from app.database import Base


class Photo(Base):
    __tablename__ = "photos"

    id = Column(String, primary_key=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    file_path = Column(String, nullable=False)
    original_filename = Column(String, nullable=False)
    content_type = Column(String, nullable=False, default="image/jpeg")
    file_size = Column(Integer, nullable=False)
    created_at = Column(String, nullable=False)
