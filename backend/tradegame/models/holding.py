"""Holding model — one stock position inside a player's portfolio."""

import uuid
from decimal import Decimal

from sqlalchemy import Column, String, Integer, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from tradegame.database import Base
from tradegame.models.types import MONEY


class Holding(Base):
    __tablename__ = "holdings"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    player_id = Column(String(36), ForeignKey("players.id"), nullable=False, index=True)
    symbol = Column(String(16), nullable=False)
    quantity = Column(Integer, nullable=False)
    stock_price = Column(MONEY, nullable=False)  # price at the last buy, used for valuation
    average_cost = Column(MONEY, nullable=False, default=Decimal("0"))

    __table_args__ = (
        UniqueConstraint("player_id", "symbol", name="uq_player_symbol"),
    )

    # Relationships
    player = relationship("Player", back_populates="holdings")
