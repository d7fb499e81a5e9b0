"""Messaging request/response schemas."""

from pydantic import BaseModel, Field


class ThreadCreate(BaseModel):
    player1: str
    player2: str


class MessageSend(BaseModel):
    sender: str
    receiver: str
    message: str = Field(min_length=1, max_length=2000)


class ThreadResponse(BaseModel):
    id: str
    player1: str
    player2: str
    created_at: str


class MessageResponse(BaseModel):
    sender: str
    content: str
    timestamp: str


class ConversationResponse(BaseModel):
    player1: str
    player2: str
    messages: list[MessageResponse]
