"""Auth request/response schemas."""

from typing import Optional

from pydantic import BaseModel, Field


class PlayerRegisterRequest(BaseModel):
    username: str = Field(min_length=1, max_length=64)
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=1)
    full_name: Optional[str] = ""


class AdminRegisterRequest(BaseModel):
    username: str = Field(min_length=1, max_length=64)
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=1)
    full_name: Optional[str] = ""


class LoginRequest(BaseModel):
    username: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class PlayerResponse(BaseModel):
    id: str
    username: str
    email: str
    full_name: str
    cash: float
    active: bool
    current_game_id: Optional[str]
    games_won: int
    created_at: str

    class Config:
        from_attributes = True


class AdminResponse(BaseModel):
    id: str
    username: str
    email: str
    full_name: str
    created_at: str
