"""Audit log model — immutable record of every admin action on a game."""

import uuid

from sqlalchemy import Column, String, DateTime, Text

from tradegame.clock import utcnow
from tradegame.database import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    entity_type = Column(String(50), nullable=False)  # game | player
    entity_id = Column(String(36), nullable=False)
    action = Column(String(50), nullable=False)  # created | starting_time_changed | winner_declared | ...
    actor_id = Column(String(36), nullable=True)
    old_data = Column(Text, nullable=True)   # JSON string
    new_data = Column(Text, nullable=True)   # JSON string
    created_at = Column(DateTime, nullable=False, default=utcnow)
