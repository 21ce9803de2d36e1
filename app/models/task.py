from sqlalchemy import Column, Integer, String, ForeignKey, UniqueConstraint

from app.database import Base


class Task(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    description = Column(String, nullable=False)
    ai_prompt = Column(String, nullable=False)
    created_at = Column(String, nullable=False)


class TaskGroup(Base):
    __tablename__ = "task_groups"
    __table_args__ = (
        UniqueConstraint("task_id", "group_id", name="uq_task_groups_task_group"),
    )

    id = Column(String, primary_key=True)
    task_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False)
    group_id = Column(String, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(String, nullable=False)
