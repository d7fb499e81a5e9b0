"""Game request/response schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class GameCreate(BaseModel):
    starting_time: datetime
    end_time: datetime
    starting_amount: Decimal = Field(gt=0)


class StartingTimeUpdate(BaseModel):
    starting_time: datetime


class StartingAmountUpdate(BaseModel):
    starting_amount: Decimal = Field(gt=0)


class JoinGameRequest(BaseModel):
    player_id: str
    game_id: str


class GameResponse(BaseModel):
    id: str
    starting_time: str
    end_time: str
    starting_amount: float
    player_ids: list[str] = []
    winner_id: Optional[str]
    settled_at: Optional[str]
    created_at: str


class LeaderboardEntry(BaseModel):
    rank: int
    player_id: str
    username: str
    portfolio_value: float


class LeaderboardResponse(BaseModel):
    game_id: str
    leaderboard: list[LeaderboardEntry]


class WinnerResponse(BaseModel):
    game_id: str
    winner_id: str
    winner_username: str
    portfolio_value: float
    already_declared: bool = False


class NotificationResponse(BaseModel):
    message: str
    created_at: str
