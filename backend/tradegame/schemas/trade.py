"""Trade request/response schemas."""

from typing import Optional

from pydantic import BaseModel, Field


class TradeRequest(BaseModel):
    player_id: str
    symbol: str = Field(min_length=1, max_length=16)
    quantity: int = Field(gt=0)


class TransactionResponse(BaseModel):
    id: str
    type: str  # buy | sell
    symbol: str
    quantity: int
    unit_price: float
    total_cost: float
    fee: float
    player_id: str
    player_username: str
    created_at: str

    class Config:
        from_attributes = True


class TradeResponse(BaseModel):
    message: str
    transaction: TransactionResponse
    cash: float


class SnapshotHolding(BaseModel):
    symbol: str
    quantity: int
    stock_price: float


class SnapshotResponse(BaseModel):
    cash: float
    holdings: list[SnapshotHolding]
    created_at: str


class HoldingResponse(BaseModel):
    symbol: str
    quantity: int
    recorded_price: float
    average_cost: float
    latest_price: Optional[float] = None
    current_value: Optional[float] = None


class PortfolioResponse(BaseModel):
    player: str
    game_id: str
    cash: float
    holdings: list[HoldingResponse]
    recorded_value: float
    market_value: float
