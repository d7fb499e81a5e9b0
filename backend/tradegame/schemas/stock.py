"""Stock quote schemas."""

from pydantic import BaseModel


class QuoteResponse(BaseModel):
    symbol: str
    price: float


class IntradayPoint(BaseModel):
    timestamp: str
    open: float
    high: float
    low: float
    close: float
    volume: int


class IntradayResponse(BaseModel):
    symbol: str
    interval: str
    points: list[IntradayPoint]
