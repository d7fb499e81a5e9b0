"""Trades router — buy/sell execution, transaction log and portfolio history."""

import json
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from tradegame.database import get_db
from tradegame.middleware.auth import get_current_player
from tradegame.models.player import Player
from tradegame.models.transaction import Transaction
from tradegame.schemas.trade import (
    SnapshotHolding,
    SnapshotResponse,
    TradeRequest,
    TradeResponse,
    TransactionResponse,
)
from tradegame.services import trade_service
from tradegame.services.quote_service import QuoteSource, get_quote_source

router = APIRouter(prefix="/api", tags=["trades"])


def transaction_to_response(t: Transaction) -> TransactionResponse:
    return TransactionResponse(
        id=t.id,
        type=t.type,
        symbol=t.symbol,
        quantity=t.quantity,
        unit_price=float(t.unit_price),
        total_cost=float(t.total_cost),
        fee=float(t.fee),
        player_id=t.player_id,
        player_username=t.player_username,
        created_at=t.created_at.isoformat(),
    )


def _ensure_self(current_player: Player, player_id: str) -> None:
    if current_player.id != player_id:
        raise HTTPException(status_code=403, detail="Players may only trade for themselves")


@router.post("/trades/buy", response_model=TradeResponse)
def buy_stock(
    req: TradeRequest,
    db: Session = Depends(get_db),
    quotes: QuoteSource = Depends(get_quote_source),
    current_player: Player = Depends(get_current_player),
):
    """Buy shares at the current quoted price (plus the flat fee)."""
    _ensure_self(current_player, req.player_id)
    trade = trade_service.buy(db, quotes, req.player_id, req.symbol, req.quantity)
    db.refresh(current_player)
    return TradeResponse(
        message="Stock bought successfully",
        transaction=transaction_to_response(trade),
        cash=float(current_player.cash),
    )


@router.post("/trades/sell", response_model=TradeResponse)
def sell_stock(
    req: TradeRequest,
    db: Session = Depends(get_db),
    quotes: QuoteSource = Depends(get_quote_source),
    current_player: Player = Depends(get_current_player),
):
    """Sell shares at the current quoted price (minus the flat fee)."""
    _ensure_self(current_player, req.player_id)
    trade = trade_service.sell(db, quotes, req.player_id, req.symbol, req.quantity)
    db.refresh(current_player)
    return TradeResponse(
        message="Stock sold successfully",
        transaction=transaction_to_response(trade),
        cash=float(current_player.cash),
    )


@router.get("/players/{player_id}/transactions", response_model=list[TransactionResponse])
def player_transactions(
    player_id: str,
    game_id: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    current_player: Player = Depends(get_current_player),
):
    """Trade log for a player, optionally limited to one game's time window."""
    trades = trade_service.list_transactions(db, player_id, game_id=game_id, limit=limit)
    return [transaction_to_response(t) for t in trades]


@router.get("/players/{player_id}/history", response_model=list[SnapshotResponse])
def player_history(
    player_id: str,
    db: Session = Depends(get_db),
    current_player: Player = Depends(get_current_player),
):
    """Pre-trade portfolio snapshots for the player's current game."""
    snapshots = trade_service.list_history(db, player_id)
    return [
        SnapshotResponse(
            cash=float(s.cash),
            holdings=[SnapshotHolding(**h) for h in json.loads(s.holdings)],
            created_at=s.created_at.isoformat(),
        )
        for s in snapshots
    ]
