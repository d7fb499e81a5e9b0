"""Game service — game lifecycle, joining and notifications."""

import json
import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from tradegame.clock import utcnow, to_naive_utc
from tradegame.exceptions import (
    ConflictingState,
    GameAlreadyStarted,
    GameEnded,
    GameNotFound,
    InvalidGameSchedule,
    PlayerAlreadyActive,
    PlayerNotFound,
)
from tradegame.models.audit_log import AuditLog
from tradegame.models.game import Game, GameParticipant
from tradegame.models.notification import Notification
from tradegame.models.player import Player
from tradegame.services.locks import game_locks, player_locks

logger = logging.getLogger(__name__)


def get_game(db: Session, game_id: str, for_update: bool = False) -> Game:
    query = db.query(Game).filter(Game.id == game_id)
    if for_update:
        query = query.with_for_update().populate_existing()
    game = query.first()
    if not game:
        raise GameNotFound(f"Game {game_id} not found")
    return game


def _audit(db: Session, game: Game, action: str, actor_id: Optional[str], old: Optional[dict], new: dict) -> None:
    db.add(AuditLog(
        entity_type="game",
        entity_id=game.id,
        action=action,
        actor_id=actor_id,
        old_data=json.dumps(old) if old is not None else None,
        new_data=json.dumps(new),
    ))


def create_game(
    db: Session,
    starting_time: datetime,
    end_time: datetime,
    starting_amount: Decimal,
    actor_id: Optional[str] = None,
) -> Game:
    """Create a game and notify every registered player."""
    starting_time = to_naive_utc(starting_time)
    end_time = to_naive_utc(end_time)
    if end_time <= starting_time:
        raise InvalidGameSchedule("End time must be after the starting time")
    if starting_amount <= 0:
        raise InvalidGameSchedule("Starting amount must be positive")

    game = Game(
        starting_time=starting_time,
        end_time=end_time,
        starting_amount=starting_amount,
    )
    db.add(game)
    db.flush()

    message = f"A new game has been created with starting time: {starting_time.isoformat()}"
    for player in db.query(Player).all():
        player.notifications.append(Notification(message=message))

    _audit(db, game, "created", actor_id, None, {
        "starting_time": starting_time.isoformat(),
        "end_time": end_time.isoformat(),
        "starting_amount": str(starting_amount),
    })
    db.commit()
    db.refresh(game)
    logger.info("Game %s created (%s -> %s)", game.id, starting_time, end_time)
    return game


def list_games(db: Session) -> list[Game]:
    return db.query(Game).order_by(Game.starting_time.desc()).all()


def list_active_games(db: Session, now: Optional[datetime] = None) -> list[Game]:
    """Games whose window contains ``now``."""
    now = now or utcnow()
    return (
        db.query(Game)
        .filter(Game.starting_time <= now, Game.end_time >= now)
        .order_by(Game.starting_time)
        .all()
    )


def edit_starting_time(
    db: Session,
    game_id: str,
    starting_time: datetime,
    actor_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Game:
    now = now or utcnow()
    starting_time = to_naive_utc(starting_time)

    with game_locks.hold(game_id):
        try:
            game = get_game(db, game_id, for_update=True)
            if now >= game.starting_time:
                raise GameAlreadyStarted(
                    "Cannot edit starting time because the game has already started"
                )
            if starting_time <= now:
                raise InvalidGameSchedule("New starting time cannot be in the past")
            if starting_time >= game.end_time:
                raise InvalidGameSchedule("New starting time must be before the end time")

            old = game.starting_time
            game.starting_time = starting_time
            _audit(db, game, "starting_time_changed", actor_id,
                   {"starting_time": old.isoformat()},
                   {"starting_time": starting_time.isoformat()})
            db.commit()
        except Exception:
            db.rollback()
            raise

    db.refresh(game)
    return game


def edit_starting_amount(
    db: Session,
    game_id: str,
    starting_amount: Decimal,
    actor_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Game:
    now = now or utcnow()

    with game_locks.hold(game_id):
        try:
            game = get_game(db, game_id, for_update=True)
            if now >= game.starting_time:
                raise GameAlreadyStarted(
                    "Cannot edit starting amount because the game has already started"
                )
            if starting_amount <= 0:
                raise InvalidGameSchedule("Starting amount must be positive")

            old = game.starting_amount
            game.starting_amount = starting_amount
            _audit(db, game, "starting_amount_changed", actor_id,
                   {"starting_amount": str(old)},
                   {"starting_amount": str(starting_amount)})
            db.commit()
        except Exception:
            db.rollback()
            raise

    db.refresh(game)
    return game


def join_game(db: Session, player_id: str, game_id: str, now: Optional[datetime] = None) -> Player:
    """Enter a player into a game, resetting their portfolio.

    Holdings and history are cleared and cash is set to the game's starting
    amount. Past transactions stay; they are scoped to games by time window.
    Locks are always taken game first, then player.
    """
    now = now or utcnow()

    with game_locks.hold(game_id), player_locks.hold(player_id):
        try:
            player = (
                db.query(Player)
                .filter(Player.id == player_id)
                .with_for_update()
                .populate_existing()
                .first()
            )
            if not player:
                raise PlayerNotFound(f"Player {player_id} not found")
            if player.active:
                raise PlayerAlreadyActive("Player is already in a game")

            game = get_game(db, game_id, for_update=True)
            if game.end_time <= now:
                raise GameEnded("Game has already ended")

            already_joined = (
                db.query(GameParticipant)
                .filter(GameParticipant.game_id == game.id, GameParticipant.player_id == player.id)
                .first()
            )
            if already_joined:
                raise ConflictingState("Player has already joined this game")

            player.holdings.clear()
            player.history.clear()
            player.cash = game.starting_amount
            player.active = True
            player.current_game_id = game.id

            db.add(GameParticipant(game_id=game.id, player_id=player.id, joined_at=now))
            player.notifications.append(Notification(
                message=f"You have joined a game ending on: {game.end_time.isoformat()}",
            ))
            db.commit()
        except Exception:
            db.rollback()
            raise

    db.refresh(player)
    logger.info("Player %s joined game %s", player_id, game_id)
    return player


def list_participants(db: Session, game_id: str) -> list[Player]:
    game = get_game(db, game_id)
    return [p.player for p in game.participants]


def list_notifications(db: Session, player_id: str) -> list[Notification]:
    player = db.query(Player).filter(Player.id == player_id).first()
    if not player:
        raise PlayerNotFound(f"Player {player_id} not found")
    return list(player.notifications)
