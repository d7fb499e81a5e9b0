"""Valuation service — portfolio value, leaderboards and winner declaration.

Leaderboards and winners use the price recorded on each holding at its last
buy, not a live quote. Only the per-player portfolio view marks holdings to
market.
"""

import json
import logging
from decimal import Decimal
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from tradegame.clock import utcnow
from tradegame.exceptions import (
    ConflictingState,
    GameNotEnded,
    PlayerNotFound,
    PlayerNotInGame,
)
from tradegame.models.audit_log import AuditLog
from tradegame.models.game import Game, GameParticipant
from tradegame.models.player import Player
from tradegame.services.game_service import get_game
from tradegame.services.locks import game_locks
from tradegame.services.quote_service import QuoteSource

logger = logging.getLogger(__name__)


def value_portfolio(cash: Decimal, holdings: Iterable) -> Decimal:
    """Cash plus every holding's quantity times its recorded price."""
    total = Decimal(cash)
    for holding in holdings:
        total += holding.quantity * holding.stock_price
    return total


def player_value(player: Player) -> Decimal:
    return value_portfolio(player.cash, player.holdings)


def _standings(game: Game) -> list[tuple[Player, Decimal]]:
    """Participants valued and ordered best first; ties keep join order."""
    valued = [(p.player, player_value(p.player)) for p in game.participants]
    return sorted(valued, key=lambda pv: pv[1], reverse=True)


def leaderboard(db: Session, game_id: str) -> list[dict]:
    """Ranked standings for a game."""
    game = get_game(db, game_id)
    return [
        {
            "rank": i + 1,
            "player_id": player.id,
            "username": player.username,
            "portfolio_value": value,
        }
        for i, (player, value) in enumerate(_standings(game))
    ]


def declare_winner(db: Session, game_id: str, actor_id: Optional[str] = None, now: Optional[datetime] = None) -> dict:
    """Settle a finished game and record its winner.

    The first participant with the strictly highest value wins. Calling this
    again after a winner is recorded returns that winner unchanged.
    """
    now = now or utcnow()

    with game_locks.hold(game_id):
        try:
            game = get_game(db, game_id, for_update=True)
            if now < game.end_time:
                raise GameNotEnded("Game has not ended yet")

            if game.winner_id is not None:
                winner = game.winner
                declared = {
                    "game_id": game.id,
                    "winner_id": winner.id,
                    "winner_username": winner.username,
                    "portfolio_value": player_value(winner),
                    "already_declared": True,
                }
                # Release the row lock taken by get_game
                db.rollback()
                return declared

            participants = [p.player for p in game.participants]
            if not participants:
                raise ConflictingState("Game has no participants to rank")

            winner, best = None, None
            for player in participants:
                value = player_value(player)
                if best is None or value > best:
                    winner, best = player, value

            game.winner_id = winner.id
            game.settled_at = now
            winner.games_won += 1
            for player in participants:
                # The game is over; free players to join the next one
                if player.current_game_id == game.id:
                    player.active = False

            db.add(AuditLog(
                entity_type="game",
                entity_id=game.id,
                action="winner_declared",
                actor_id=actor_id,
                new_data=json.dumps({"winner_id": winner.id, "portfolio_value": str(best)}),
            ))
            db.commit()
        except StaleDataError as e:
            db.rollback()
            raise ConflictingState("A participant was modified during settlement, retry") from e
        except Exception:
            db.rollback()
            raise

    logger.info("Game %s settled, winner %s with %s", game_id, winner.username, best)
    return {
        "game_id": game_id,
        "winner_id": winner.id,
        "winner_username": winner.username,
        "portfolio_value": best,
        "already_declared": False,
    }


def get_portfolio(db: Session, quotes: QuoteSource, username: str, game_id: str) -> dict:
    """A participant's portfolio with every holding marked to the live price.

    Players keep a single portfolio that is reset on each join, so the view
    always reflects the player's current game. ``game_id`` only checks that
    the player took part in that game.
    """
    player = db.query(Player).filter(Player.username == username).first()
    if not player:
        raise PlayerNotFound(f"Player {username} not found")

    game = get_game(db, game_id)
    joined = (
        db.query(GameParticipant)
        .filter(GameParticipant.game_id == game.id, GameParticipant.player_id == player.id)
        .first()
    )
    if not joined:
        raise PlayerNotInGame("Player is not part of this game")

    holdings = []
    for h in player.holdings:
        latest_price = quotes.get_price(h.symbol)
        holdings.append({
            "symbol": h.symbol,
            "quantity": h.quantity,
            "recorded_price": h.stock_price,
            "average_cost": h.average_cost,
            "latest_price": latest_price,
            "current_value": latest_price * h.quantity,
        })

    return {
        "player": player.username,
        "game_id": game.id,
        "cash": player.cash,
        "holdings": holdings,
        "recorded_value": player_value(player),
        "market_value": player.cash + sum((h["current_value"] for h in holdings), Decimal("0")),
    }
