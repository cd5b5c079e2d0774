"""UserBadge model: badges awarded to users by automation rules."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.dialects.postgresql import UUID

from taskflow.db.base import Base


class UserBadge(Base):
    __tablename__ = "user_badges"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(String(255), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    rule_id = Column(UUID(as_uuid=True), nullable=True)

    awarded_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
