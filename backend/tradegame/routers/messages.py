"""Messages router — pairwise chat between players."""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from tradegame.database import get_db
from tradegame.middleware.auth import get_current_player
from tradegame.models.player import Player
from tradegame.schemas.chat import (
    ConversationResponse,
    MessageResponse,
    MessageSend,
    ThreadCreate,
    ThreadResponse,
)
from tradegame.services import chat_service

router = APIRouter(prefix="/api/messages", tags=["messages"])


@router.post("/threads", response_model=ThreadResponse)
def create_thread(
    req: ThreadCreate,
    db: Session = Depends(get_db),
    current_player: Player = Depends(get_current_player),
):
    thread = chat_service.create_thread(db, req.player1, req.player2)
    return ThreadResponse(
        id=thread.id,
        player1=thread.player1,
        player2=thread.player2,
        created_at=thread.created_at.isoformat(),
    )


@router.post("/send", response_model=MessageResponse)
def send_message(
    req: MessageSend,
    db: Session = Depends(get_db),
    current_player: Player = Depends(get_current_player),
):
    if req.sender != current_player.username:
        raise HTTPException(status_code=403, detail="Players may only send as themselves")
    message = chat_service.send_message(db, req.sender, req.receiver, req.message)
    return MessageResponse(
        sender=message.sender,
        content=message.content,
        timestamp=message.created_at.isoformat(),
    )


@router.get("", response_model=ConversationResponse)
def view_messages(
    player1: str = Query(...),
    player2: str = Query(...),
    db: Session = Depends(get_db),
    current_player: Player = Depends(get_current_player),
):
    """Messages between two players, oldest first."""
    messages = chat_service.get_messages(db, player1, player2)
    return ConversationResponse(
        player1=player1,
        player2=player2,
        messages=[
            MessageResponse(sender=m.sender, content=m.content, timestamp=m.created_at.isoformat())
            for m in messages
        ],
    )
