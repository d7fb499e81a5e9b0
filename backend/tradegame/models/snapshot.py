"""Portfolio snapshot — pre-trade copy of cash and holdings."""

from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship

from tradegame.clock import utcnow
from tradegame.database import Base
from tradegame.models.types import MONEY


class PortfolioSnapshot(Base):
    __tablename__ = "portfolio_snapshots"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    player_id = Column(String(36), ForeignKey("players.id"), nullable=False, index=True)
    cash = Column(MONEY, nullable=False)
    holdings = Column(Text, nullable=False)  # JSON string: [{symbol, quantity, stock_price}]
    created_at = Column(DateTime, nullable=False, default=utcnow)

    # Relationships
    player = relationship("Player", back_populates="history")
