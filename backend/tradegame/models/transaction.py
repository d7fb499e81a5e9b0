"""Transaction model — immutable record of every executed trade."""

import uuid

from sqlalchemy import Column, String, Integer, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from tradegame.clock import utcnow
from tradegame.database import Base
from tradegame.models.types import MONEY


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    player_id = Column(String(36), ForeignKey("players.id"), nullable=False, index=True)
    player_username = Column(String(64), nullable=False)
    type = Column(String(8), nullable=False)  # buy | sell
    symbol = Column(String(16), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(MONEY, nullable=False)
    total_cost = Column(MONEY, nullable=False)  # price * quantity, fee excluded
    fee = Column(MONEY, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    # Relationships
    player = relationship("Player", back_populates="transactions")
