"""Auth router — player registration, login, and account info."""

from decimal import Decimal

from fastapi import APIRouter, Depends, Request
from sqlalchemy import or_
from sqlalchemy.orm import Session

from tradegame.config import settings
from tradegame.database import get_db
from tradegame.exceptions import AccountExists, InvalidCredentials
from tradegame.middleware.auth import (
    hash_password,
    verify_password,
    create_access_token,
    get_current_player,
)
from tradegame.middleware.rate_limit import limiter
from tradegame.models.player import Player
from tradegame.schemas.auth import PlayerRegisterRequest, LoginRequest, TokenResponse, PlayerResponse
from tradegame.schemas.game import NotificationResponse
from tradegame.services import game_service

router = APIRouter(prefix="/api/auth", tags=["auth"])


def player_to_response(player: Player) -> PlayerResponse:
    return PlayerResponse(
        id=player.id,
        username=player.username,
        email=player.email,
        full_name=player.full_name or "",
        cash=float(player.cash),
        active=player.active,
        current_game_id=player.current_game_id,
        games_won=player.games_won,
        created_at=player.created_at.isoformat(),
    )


@router.post("/register", response_model=PlayerResponse, status_code=201)
def register(req: PlayerRegisterRequest, db: Session = Depends(get_db)):
    """Register a new player. New players start inactive with the signup cash."""
    existing = (
        db.query(Player)
        .filter(or_(Player.username == req.username, Player.email == req.email))
        .first()
    )
    if existing:
        raise AccountExists("Username or email already exists")

    player = Player(
        username=req.username,
        email=req.email,
        password_hash=hash_password(req.password),
        full_name=req.full_name or "",
        cash=Decimal(settings.SIGNUP_CASH),
        active=False,
    )
    db.add(player)
    db.commit()
    db.refresh(player)
    return player_to_response(player)


@router.post("/login", response_model=TokenResponse)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
def login(request: Request, req: LoginRequest, db: Session = Depends(get_db)):
    """Login and get JWT token."""
    player = db.query(Player).filter(Player.username == req.username).first()
    if not player or not verify_password(req.password, player.password_hash):
        raise InvalidCredentials("Invalid username or password")

    token = create_access_token({"sub": player.id, "role": "player"})
    return TokenResponse(access_token=token)


@router.get("/me", response_model=PlayerResponse)
def get_me(current_player: Player = Depends(get_current_player)):
    """Get current player info."""
    return player_to_response(current_player)


@router.get("/notifications", response_model=list[NotificationResponse])
def my_notifications(
    db: Session = Depends(get_db),
    current_player: Player = Depends(get_current_player),
):
    notifications = game_service.list_notifications(db, current_player.id)
    return [
        NotificationResponse(message=n.message, created_at=n.created_at.isoformat())
        for n in notifications
    ]
