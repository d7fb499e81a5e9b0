"""Player model — a trading account and the owner of one portfolio."""

import uuid
from decimal import Decimal

from sqlalchemy import Column, String, DateTime, Integer, Boolean
from sqlalchemy.orm import relationship

from tradegame.clock import utcnow
from tradegame.database import Base
from tradegame.models.types import MONEY


class Player(Base):
    __tablename__ = "players"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    username = Column(String(64), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=False, default="")
    cash = Column(MONEY, nullable=False, default=Decimal("0"))
    active = Column(Boolean, nullable=False, default=False)
    current_game_id = Column(String(36), nullable=True)  # game joined most recently
    games_won = Column(Integer, nullable=False, default=0)
    # Bumped on every flush; a stale write raises StaleDataError
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    __mapper_args__ = {"version_id_col": version}

    # Relationships
    holdings = relationship(
        "Holding",
        back_populates="player",
        cascade="all, delete-orphan",
        order_by="Holding.symbol",
    )
    history = relationship(
        "PortfolioSnapshot",
        back_populates="player",
        cascade="all, delete-orphan",
        order_by="PortfolioSnapshot.seq",
    )
    transactions = relationship("Transaction", back_populates="player")
    notifications = relationship(
        "Notification",
        back_populates="player",
        cascade="all, delete-orphan",
        order_by="Notification.seq",
    )
