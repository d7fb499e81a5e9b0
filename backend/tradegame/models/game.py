"""Game and GameParticipant models."""

import uuid

from sqlalchemy import Column, String, DateTime, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import relationship

from tradegame.clock import utcnow
from tradegame.database import Base
from tradegame.models.types import MONEY


class Game(Base):
    __tablename__ = "games"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    starting_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    starting_amount = Column(MONEY, nullable=False)
    winner_id = Column(String(36), ForeignKey("players.id"), nullable=True)
    settled_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    # Relationships
    participants = relationship(
        "GameParticipant",
        back_populates="game",
        order_by="GameParticipant.seq",
    )
    winner = relationship("Player", foreign_keys=[winner_id])


class GameParticipant(Base):
    __tablename__ = "game_participants"

    # Autoincrement key doubles as join order
    seq = Column(Integer, primary_key=True, autoincrement=True)
    game_id = Column(String(36), ForeignKey("games.id"), nullable=False, index=True)
    player_id = Column(String(36), ForeignKey("players.id"), nullable=False, index=True)
    joined_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("game_id", "player_id", name="uq_game_player"),
    )

    # Relationships
    game = relationship("Game", back_populates="participants")
    player = relationship("Player")
