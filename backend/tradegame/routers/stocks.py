"""Stocks router — pass-through to the quote provider."""

from fastapi import APIRouter, Depends, Query

from tradegame.middleware.auth import get_current_player
from tradegame.models.player import Player
from tradegame.schemas.stock import IntradayPoint, IntradayResponse, QuoteResponse
from tradegame.services.quote_service import QuoteSource, get_quote_source
from tradegame.services.trade_service import normalize_symbol

router = APIRouter(prefix="/api/stocks", tags=["stocks"])


@router.get("/{symbol}/quote", response_model=QuoteResponse)
def get_quote(
    symbol: str,
    quotes: QuoteSource = Depends(get_quote_source),
    current_player: Player = Depends(get_current_player),
):
    symbol = normalize_symbol(symbol)
    return QuoteResponse(symbol=symbol, price=float(quotes.get_price(symbol)))


@router.get("/{symbol}/intraday", response_model=IntradayResponse)
def get_intraday(
    symbol: str,
    interval: str = Query("1min", pattern=r"^(1|5|15|30|60)min$"),
    quotes: QuoteSource = Depends(get_quote_source),
    current_player: Player = Depends(get_current_player),
):
    symbol = normalize_symbol(symbol)
    points = quotes.get_intraday(symbol, interval)
    return IntradayResponse(
        symbol=symbol,
        interval=interval,
        points=[
            IntradayPoint(
                timestamp=p["timestamp"],
                open=float(p["open"]),
                high=float(p["high"]),
                low=float(p["low"]),
                close=float(p["close"]),
                volume=p["volume"],
            )
            for p in points
        ],
    )
