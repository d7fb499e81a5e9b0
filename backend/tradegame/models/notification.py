"""Notification model."""

from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship

from tradegame.clock import utcnow
from tradegame.database import Base


class Notification(Base):
    __tablename__ = "notifications"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    player_id = Column(String(36), ForeignKey("players.id"), nullable=False, index=True)
    message = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    # Relationships
    player = relationship("Player", back_populates="notifications")
