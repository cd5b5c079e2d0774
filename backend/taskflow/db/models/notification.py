"""Notification model: per-user inbox entries."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import BigInteger, Boolean, Column, DateTime, Identity, String, Text
from sqlalchemy.dialects.postgresql import UUID

from taskflow.db.base import Base


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    seq = Column(BigInteger, Identity(), nullable=False, unique=True)
    recipient_id = Column(String(255), nullable=False, index=True)

    kind = Column(String(50), nullable=False)  # task_assignment, task_comment, automation_triggered, ...
    message = Column(Text, nullable=False)
    project_id = Column(UUID(as_uuid=True), nullable=True)
    task_id = Column(UUID(as_uuid=True), nullable=True, index=True)
    read = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
