"""SQLAlchemy ORM models."""

from tradegame.models.player import Player
from tradegame.models.admin import Admin
from tradegame.models.game import Game, GameParticipant
from tradegame.models.holding import Holding
from tradegame.models.snapshot import PortfolioSnapshot
from tradegame.models.transaction import Transaction
from tradegame.models.notification import Notification
from tradegame.models.chat import ChatThread, ChatMessage
from tradegame.models.audit_log import AuditLog

__all__ = [
    "Player",
    "Admin",
    "Game",
    "GameParticipant",
    "Holding",
    "PortfolioSnapshot",
    "Transaction",
    "Notification",
    "ChatThread",
    "ChatMessage",
    "AuditLog",
]
