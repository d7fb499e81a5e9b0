"""ChatThread and ChatMessage models — pairwise player messaging."""

import uuid

from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from tradegame.clock import utcnow
from tradegame.database import Base


class ChatThread(Base):
    __tablename__ = "chat_threads"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    player1 = Column(String(64), ForeignKey("players.username"), nullable=False)
    player2 = Column(String(64), ForeignKey("players.username"), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("player1", "player2", name="uq_chat_pair"),
    )

    # Relationships
    messages = relationship(
        "ChatMessage",
        back_populates="thread",
        cascade="all, delete-orphan",
        order_by="ChatMessage.seq",
    )


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    thread_id = Column(String(36), ForeignKey("chat_threads.id"), nullable=False, index=True)
    sender = Column(String(64), nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    # Relationships
    thread = relationship("ChatThread", back_populates="messages")
