"""AutomationRule model: project-scoped trigger/action rules."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import BigInteger, Boolean, Column, DateTime, ForeignKey, Identity, Integer, String
from sqlalchemy.dialects.postgresql import JSONB, UUID

from taskflow.db.base import Base


class AutomationRule(Base):
    __tablename__ = "automation_rules"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # Stored order; rules fire in this order
    position = Column(BigInteger, Identity(), nullable=False, unique=True)
    project_id = Column(
        UUID(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )

    name = Column(String(255), nullable=False)
    trigger = Column(JSONB, nullable=False)  # {"type": ..., "condition": {...}}
    action = Column(JSONB, nullable=False)  # {"type": ..., "params": {...}}
    creator_id = Column(String(255), nullable=False)
    active = Column(Boolean, nullable=False, default=True, index=True)

    # Written only by the automation engine
    execution_count = Column(Integer, nullable=False, default=0)
    last_executed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
