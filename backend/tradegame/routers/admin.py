"""Admin router — admin accounts, game management and settlement."""

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
    require_admin,
)
from tradegame.middleware.rate_limit import limiter
from tradegame.models.admin import Admin
from tradegame.routers.games import game_to_response
from tradegame.schemas.auth import AdminRegisterRequest, AdminResponse, LoginRequest, TokenResponse
from tradegame.schemas.game import (
    GameCreate,
    GameResponse,
    StartingAmountUpdate,
    StartingTimeUpdate,
    WinnerResponse,
)
from tradegame.services import game_service, valuation_service

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.post("/register", response_model=AdminResponse, status_code=201)
def register_admin(req: AdminRegisterRequest, db: Session = Depends(get_db)):
    existing = (
        db.query(Admin)
        .filter(or_(Admin.username == req.username, Admin.email == req.email))
        .first()
    )
    if existing:
        raise AccountExists("Username or email already exists")

    admin = Admin(
        username=req.username,
        email=req.email,
        password_hash=hash_password(req.password),
        full_name=req.full_name or "",
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    return AdminResponse(
        id=admin.id,
        username=admin.username,
        email=admin.email,
        full_name=admin.full_name,
        created_at=admin.created_at.isoformat(),
    )


@router.post("/login", response_model=TokenResponse)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
def login_admin(request: Request, req: LoginRequest, db: Session = Depends(get_db)):
    admin = db.query(Admin).filter(Admin.username == req.username).first()
    if not admin or not verify_password(req.password, admin.password_hash):
        raise InvalidCredentials("Invalid username or password")

    token = create_access_token({"sub": admin.id, "role": "admin"})
    return TokenResponse(access_token=token)


@router.post("/games", response_model=GameResponse, status_code=201)
def create_game(
    req: GameCreate,
    db: Session = Depends(get_db),
    admin: Admin = Depends(require_admin),
):
    """Create a game; every player is notified."""
    game = game_service.create_game(
        db,
        starting_time=req.starting_time,
        end_time=req.end_time,
        starting_amount=req.starting_amount,
        actor_id=admin.id,
    )
    return game_to_response(game)


@router.get("/games", response_model=list[GameResponse])
def list_games(
    db: Session = Depends(get_db),
    admin: Admin = Depends(require_admin),
):
    return [game_to_response(g) for g in game_service.list_games(db)]


@router.get("/games/active", response_model=list[GameResponse])
def view_active_games(
    db: Session = Depends(get_db),
    admin: Admin = Depends(require_admin),
):
    return [game_to_response(g) for g in game_service.list_active_games(db)]


@router.put("/games/{game_id}/starting-time", response_model=GameResponse)
def edit_starting_time(
    game_id: str,
    req: StartingTimeUpdate,
    db: Session = Depends(get_db),
    admin: Admin = Depends(require_admin),
):
    """Move the start of a game that has not started yet."""
    game = game_service.edit_starting_time(db, game_id, req.starting_time, actor_id=admin.id)
    return game_to_response(game)


@router.put("/games/{game_id}/starting-amount", response_model=GameResponse)
def edit_starting_amount(
    game_id: str,
    req: StartingAmountUpdate,
    db: Session = Depends(get_db),
    admin: Admin = Depends(require_admin),
):
    game = game_service.edit_starting_amount(db, game_id, req.starting_amount, actor_id=admin.id)
    return game_to_response(game)


@router.put("/games/{game_id}/winner", response_model=WinnerResponse)
def declare_winner(
    game_id: str,
    db: Session = Depends(get_db),
    admin: Admin = Depends(require_admin),
):
    """Settle an ended game. Repeated calls return the recorded winner."""
    result = valuation_service.declare_winner(db, game_id, actor_id=admin.id)
    return WinnerResponse(
        game_id=result["game_id"],
        winner_id=result["winner_id"],
        winner_username=result["winner_username"],
        portfolio_value=float(result["portfolio_value"]),
        already_declared=result["already_declared"],
    )
