"""Chat service — one message thread per pair of players."""

from typing import Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from tradegame.exceptions import PlayerNotFound
from tradegame.models.chat import ChatMessage, ChatThread
from tradegame.models.player import Player


def _require_players(db: Session, *usernames: str) -> None:
    found = {
        row.username
        for row in db.query(Player.username).filter(Player.username.in_(usernames)).all()
    }
    for username in usernames:
        if username not in found:
            raise PlayerNotFound(f"Player {username} not found")


def _find_thread(db: Session, a: str, b: str) -> Optional[ChatThread]:
    return (
        db.query(ChatThread)
        .filter(or_(
            and_(ChatThread.player1 == a, ChatThread.player2 == b),
            and_(ChatThread.player1 == b, ChatThread.player2 == a),
        ))
        .first()
    )


def create_thread(db: Session, player1: str, player2: str) -> ChatThread:
    """Return the pair's thread, creating it if this is their first contact."""
    _require_players(db, player1, player2)
    thread = _find_thread(db, player1, player2)
    if thread is None:
        thread = ChatThread(player1=player1, player2=player2)
        db.add(thread)
        db.commit()
        db.refresh(thread)
    return thread


def send_message(db: Session, sender: str, receiver: str, content: str) -> ChatMessage:
    _require_players(db, sender, receiver)
    thread = _find_thread(db, sender, receiver)
    if thread is None:
        thread = ChatThread(player1=sender, player2=receiver)
        db.add(thread)
        db.flush()

    message = ChatMessage(thread_id=thread.id, sender=sender, content=content)
    db.add(message)
    db.commit()
    db.refresh(message)
    return message


def get_messages(db: Session, player1: str, player2: str) -> list[ChatMessage]:
    """All messages exchanged by the pair, oldest first."""
    _require_players(db, player1, player2)
    thread = _find_thread(db, player1, player2)
    if thread is None:
        return []
    return list(thread.messages)
