"""Task, TaskHistory and TaskComment models."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Identity, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID

from taskflow.db.base import Base


class Task(Base):
    __tablename__ = "tasks"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project_id = Column(
        UUID(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    status = Column(String(100), nullable=False)  # one of the project's status names
    assignee_id = Column(String(255), nullable=True, index=True)
    creator_id = Column(String(255), nullable=False)
    due_date = Column(DateTime(timezone=True), nullable=True)
    priority = Column(String(20), nullable=False, default="medium")

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc), index=True)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )


class TaskHistory(Base):
    __tablename__ = "task_history"

    # Identity column gives the append order
    seq = Column(BigInteger, Identity(), primary_key=True)
    task_id = Column(UUID(as_uuid=True), ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)

    actor_id = Column(String(255), nullable=True)  # null for system actions
    action = Column(String(50), nullable=False)  # created, updated, status_changed, assigned, commented
    old_value = Column(JSONB, nullable=True)
    new_value = Column(JSONB, nullable=True)
    rule_id = Column(UUID(as_uuid=True), nullable=True)  # set when an automation rule acted

    timestamp = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    # NO updated_at -- history is append-only


class TaskComment(Base):
    __tablename__ = "task_comments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    task_id = Column(UUID(as_uuid=True), ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(255), nullable=False)
    text = Column(Text, nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
