"""Trade service — executes buys and sells against a player's portfolio.

Each trade is one all-or-nothing unit:
1. Validate quantity and that the player exists and is active
2. Fetch the price (outside the player lock, so slow quotes don't block)
3. Under the player lock, re-read the player row FOR UPDATE
4. Check the current game is still open, then funds / holdings
5. Snapshot the pre-trade portfolio into history
6. Apply the fee and the cash movement, adjust the holding
7. Insert the immutable transaction record
All staged in one session and committed once.
"""

import json
import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from tradegame.clock import utcnow
from tradegame.config import settings
from tradegame.exceptions import (
    ConflictingState,
    GameEnded,
    GameNotFound,
    InsufficientFunds,
    InsufficientHoldings,
    InvalidQuantity,
    PlayerNotActive,
    PlayerNotFound,
    QuoteUnavailable,
)
from tradegame.models.game import Game
from tradegame.models.holding import Holding
from tradegame.models.player import Player
from tradegame.models.snapshot import PortfolioSnapshot
from tradegame.models.transaction import Transaction
from tradegame.services.locks import player_locks
from tradegame.services.quote_service import QuoteSource

logger = logging.getLogger(__name__)

CENT_FRACTION = Decimal("0.0001")


def money(value: Decimal) -> Decimal:
    """Round to the precision money columns are stored with."""
    return Decimal(value).quantize(CENT_FRACTION)


def trade_fee() -> Decimal:
    return money(Decimal(settings.TRADE_FEE))


def _validate_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidQuantity(f"Quantity must be a positive integer, got {quantity!r}")
    return quantity


def normalize_symbol(symbol: str) -> str:
    cleaned = (symbol or "").strip().upper()
    if not cleaned:
        raise QuoteUnavailable("Stock symbol is required")
    return cleaned


def _get_player(db: Session, player_id: str, for_update: bool = False) -> Player:
    query = db.query(Player).filter(Player.id == player_id)
    if for_update:
        query = query.with_for_update().populate_existing()
    player = query.first()
    if not player:
        raise PlayerNotFound(f"Player {player_id} not found")
    return player


def _get_active_player(db: Session, player_id: str, for_update: bool = False) -> Player:
    player = _get_player(db, player_id, for_update=for_update)
    if not player.active:
        raise PlayerNotActive("Player is not active")
    return player


def _ensure_game_open(db: Session, player: Player) -> None:
    """Reject trades once the player's current game has passed its end time."""
    if not player.current_game_id:
        return
    game = db.query(Game).filter(Game.id == player.current_game_id).first()
    if game and utcnow() >= game.end_time:
        raise GameEnded("Game has already ended, trading is closed")


def _find_holding(player: Player, symbol: str) -> Optional[Holding]:
    for holding in player.holdings:
        if holding.symbol == symbol:
            return holding
    return None


def snapshot_portfolio(player: Player) -> PortfolioSnapshot:
    """Copy the player's current cash and holdings into a history entry."""
    return PortfolioSnapshot(
        cash=player.cash,
        holdings=json.dumps([
            {
                "symbol": h.symbol,
                "quantity": h.quantity,
                "stock_price": str(h.stock_price),
            }
            for h in player.holdings
        ]),
    )


def _commit(db: Session) -> None:
    try:
        db.commit()
    except StaleDataError as e:
        db.rollback()
        raise ConflictingState("Portfolio was modified concurrently, retry the trade") from e


def buy(db: Session, quotes: QuoteSource, player_id: str, symbol: str, quantity: int) -> Transaction:
    """Buy ``quantity`` shares of ``symbol`` at the current quoted price."""
    quantity = _validate_quantity(quantity)
    symbol = normalize_symbol(symbol)
    _get_active_player(db, player_id)

    price = money(quotes.get_price(symbol))

    with player_locks.hold(player_id):
        try:
            player = _get_active_player(db, player_id, for_update=True)
            _ensure_game_open(db, player)
            fee = trade_fee()
            total_cost = money(price * quantity)

            if player.cash < total_cost + fee:
                raise InsufficientFunds(
                    f"Insufficient funds: have {player.cash:.2f}, need {total_cost + fee:.2f}"
                )

            player.history.append(snapshot_portfolio(player))
            player.cash = player.cash - fee
            player.cash = player.cash - total_cost

            holding = _find_holding(player, symbol)
            if holding:
                held_cost = holding.average_cost * holding.quantity
                holding.quantity += quantity
                holding.average_cost = money((held_cost + total_cost) / holding.quantity)
                holding.stock_price = price
            else:
                player.holdings.append(Holding(
                    symbol=symbol,
                    quantity=quantity,
                    stock_price=price,
                    average_cost=price,
                ))

            trade = Transaction(
                player_id=player.id,
                player_username=player.username,
                type="buy",
                symbol=symbol,
                quantity=quantity,
                unit_price=price,
                total_cost=total_cost,
                fee=fee,
            )
            db.add(trade)
            _commit(db)
        except Exception:
            db.rollback()
            raise

    db.refresh(trade)
    logger.info("Player %s bought %d %s @ %s", player_id, quantity, symbol, price)
    return trade


def sell(db: Session, quotes: QuoteSource, player_id: str, symbol: str, quantity: int) -> Transaction:
    """Sell ``quantity`` shares of ``symbol`` at the current quoted price."""
    quantity = _validate_quantity(quantity)
    symbol = normalize_symbol(symbol)
    _get_active_player(db, player_id)

    price = money(quotes.get_price(symbol))

    with player_locks.hold(player_id):
        try:
            player = _get_active_player(db, player_id, for_update=True)
            _ensure_game_open(db, player)
            fee = trade_fee()

            holding = _find_holding(player, symbol)
            if holding is None or holding.quantity < quantity:
                held = holding.quantity if holding else 0
                raise InsufficientHoldings(
                    f"Insufficient holdings: have {held} {symbol}, tried to sell {quantity}"
                )

            proceeds = money(price * quantity)
            if player.cash - fee + proceeds < 0:
                raise InsufficientFunds("Insufficient funds to cover the trade fee")

            player.history.append(snapshot_portfolio(player))
            player.cash = player.cash - fee
            player.cash = player.cash + proceeds

            holding.quantity -= quantity
            if holding.quantity == 0:
                player.holdings.remove(holding)

            trade = Transaction(
                player_id=player.id,
                player_username=player.username,
                type="sell",
                symbol=symbol,
                quantity=quantity,
                unit_price=price,
                total_cost=proceeds,
                fee=fee,
            )
            db.add(trade)
            _commit(db)
        except Exception:
            db.rollback()
            raise

    db.refresh(trade)
    logger.info("Player %s sold %d %s @ %s", player_id, quantity, symbol, price)
    return trade


def list_transactions(
    db: Session,
    player_id: str,
    game_id: Optional[str] = None,
    limit: int = 100,
) -> list[Transaction]:
    """Recent trades for a player, newest first.

    With ``game_id`` the result is restricted to the game's time window;
    transactions carry no game reference of their own.
    """
    _get_player(db, player_id)
    query = db.query(Transaction).filter(Transaction.player_id == player_id)
    if game_id:
        game = db.query(Game).filter(Game.id == game_id).first()
        if not game:
            raise GameNotFound(f"Game {game_id} not found")
        query = query.filter(
            Transaction.created_at >= game.starting_time,
            Transaction.created_at <= game.end_time,
        )
    return (
        query.order_by(Transaction.created_at.desc())
        .limit(limit)
        .all()
    )


def list_history(db: Session, player_id: str) -> list[PortfolioSnapshot]:
    """Pre-trade portfolio snapshots, oldest first."""
    player = _get_player(db, player_id)
    return list(player.history)
