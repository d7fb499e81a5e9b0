"""Admin model."""

import uuid

from sqlalchemy import Column, String, DateTime

from tradegame.clock import utcnow
from tradegame.database import Base


class Admin(Base):
    __tablename__ = "admins"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    username = Column(String(64), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=False, default="")
    created_at = Column(DateTime, nullable=False, default=utcnow)
