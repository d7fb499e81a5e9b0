"""Games router — listing, joining, leaderboards and portfolios."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from tradegame.database import get_db
from tradegame.middleware.auth import get_current_player
from tradegame.models.game import Game
from tradegame.models.player import Player
from tradegame.routers.auth import player_to_response
from tradegame.schemas.auth import PlayerResponse
from tradegame.schemas.game import (
    GameResponse,
    JoinGameRequest,
    LeaderboardEntry,
    LeaderboardResponse,
)
from tradegame.schemas.trade import HoldingResponse, PortfolioResponse
from tradegame.services import game_service, valuation_service
from tradegame.services.quote_service import QuoteSource, get_quote_source

router = APIRouter(prefix="/api", tags=["games"])


def game_to_response(game: Game) -> GameResponse:
    return GameResponse(
        id=game.id,
        starting_time=game.starting_time.isoformat(),
        end_time=game.end_time.isoformat(),
        starting_amount=float(game.starting_amount),
        player_ids=[p.player_id for p in game.participants],
        winner_id=game.winner_id,
        settled_at=game.settled_at.isoformat() if game.settled_at else None,
        created_at=game.created_at.isoformat(),
    )


@router.get("/games/active", response_model=list[GameResponse])
def active_games(
    db: Session = Depends(get_db),
    current_player: Player = Depends(get_current_player),
):
    """Games currently in progress."""
    return [game_to_response(g) for g in game_service.list_active_games(db)]


@router.post("/games/join", response_model=PlayerResponse)
def join_game(
    req: JoinGameRequest,
    db: Session = Depends(get_db),
    current_player: Player = Depends(get_current_player),
):
    """Join a game; the player's portfolio is reset to the game's starting amount."""
    if current_player.id != req.player_id:
        raise HTTPException(status_code=403, detail="Players may only join games themselves")
    player = game_service.join_game(db, req.player_id, req.game_id)
    return player_to_response(player)


@router.get("/games/{game_id}", response_model=GameResponse)
def get_game(
    game_id: str,
    db: Session = Depends(get_db),
    current_player: Player = Depends(get_current_player),
):
    return game_to_response(game_service.get_game(db, game_id))


@router.get("/games/{game_id}/leaderboard", response_model=LeaderboardResponse)
def get_leaderboard(
    game_id: str,
    db: Session = Depends(get_db),
    current_player: Player = Depends(get_current_player),
):
    """Participants ranked by portfolio value at recorded prices."""
    entries = valuation_service.leaderboard(db, game_id)
    return LeaderboardResponse(
        game_id=game_id,
        leaderboard=[
            LeaderboardEntry(
                rank=e["rank"],
                player_id=e["player_id"],
                username=e["username"],
                portfolio_value=float(e["portfolio_value"]),
            )
            for e in entries
        ],
    )


@router.get("/portfolio/{username}/{game_id}", response_model=PortfolioResponse)
def get_portfolio(
    username: str,
    game_id: str,
    db: Session = Depends(get_db),
    quotes: QuoteSource = Depends(get_quote_source),
    current_player: Player = Depends(get_current_player),
):
    """A participant's holdings marked to live prices."""
    portfolio = valuation_service.get_portfolio(db, quotes, username, game_id)
    return PortfolioResponse(
        player=portfolio["player"],
        game_id=portfolio["game_id"],
        cash=float(portfolio["cash"]),
        holdings=[
            HoldingResponse(
                symbol=h["symbol"],
                quantity=h["quantity"],
                recorded_price=float(h["recorded_price"]),
                average_cost=float(h["average_cost"]),
                latest_price=float(h["latest_price"]),
                current_value=float(h["current_value"]),
            )
            for h in portfolio["holdings"]
        ],
        recorded_value=float(portfolio["recorded_value"]),
        market_value=float(portfolio["market_value"]),
    )
