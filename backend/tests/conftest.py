"""Shared fixtures: in-memory database, fake quote source, API client."""

import os

# Must be set before tradegame.config is imported anywhere
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

from datetime import timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

import tradegame.models  # noqa: F401
from tradegame.clock import utcnow
from tradegame.database import Base, SessionLocal, engine, get_db
from tradegame.exceptions import QuoteUnavailable
from tradegame.middleware.auth import create_access_token, hash_password
from tradegame.models.admin import Admin
from tradegame.models.game import Game
from tradegame.models.player import Player
from tradegame.services import game_service
from tradegame.services.quote_service import QuoteSource, get_quote_source

PASSWORD = "secret-pass"
PASSWORD_HASH = hash_password(PASSWORD)


class FakeQuoteSource(QuoteSource):
    """In-memory prices; unknown symbols behave like an empty upstream quote."""

    def __init__(self, prices=None):
        self.prices = {k: Decimal(str(v)) for k, v in (prices or {}).items()}
        self.calls = []

    def set_price(self, symbol, price):
        self.prices[symbol] = Decimal(str(price))

    def get_price(self, symbol):
        self.calls.append(symbol)
        if symbol not in self.prices:
            raise QuoteUnavailable(f"Stock data not available for symbol {symbol}")
        return self.prices[symbol]

    def get_intraday(self, symbol, interval="1min"):
        price = self.get_price(symbol)
        return [{
            "timestamp": "2026-01-02 16:00:00",
            "open": price,
            "high": price,
            "low": price,
            "close": price,
            "volume": 100,
        }]


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def quotes():
    return FakeQuoteSource({"AAPL": "100", "MSFT": "250"})


@pytest.fixture
def make_player(db):
    def _make(username="alice", cash="1000", active=True):
        player = Player(
            username=username,
            email=f"{username}@example.com",
            password_hash=PASSWORD_HASH,
            cash=Decimal(cash),
            active=active,
        )
        db.add(player)
        db.commit()
        db.refresh(player)
        return player

    return _make


@pytest.fixture
def make_admin(db):
    def _make(username="root"):
        admin = Admin(
            username=username,
            email=f"{username}@example.com",
            password_hash=PASSWORD_HASH,
        )
        db.add(admin)
        db.commit()
        db.refresh(admin)
        return admin

    return _make


@pytest.fixture
def make_game(db):
    def _make(starts_in=timedelta(hours=-1), lasts=timedelta(days=1), starting_amount="1000"):
        start = utcnow() + starts_in
        game = Game(
            starting_time=start,
            end_time=start + lasts,
            starting_amount=Decimal(starting_amount),
        )
        db.add(game)
        db.commit()
        db.refresh(game)
        return game

    return _make


@pytest.fixture
def enroll(db):
    """Join a player to a game, then optionally force their cash."""
    def _enroll(player, game, cash=None):
        game_service.join_game(db, player.id, game.id)
        if cash is not None:
            player.cash = Decimal(cash)
            db.commit()
        db.refresh(player)
        return player

    return _enroll


def player_headers(player):
    token = create_access_token({"sub": player.id, "role": "player"})
    return {"Authorization": f"Bearer {token}"}


def admin_headers(admin):
    token = create_access_token({"sub": admin.id, "role": "admin"})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(db, quotes):
    from tradegame.main import app

    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_quote_source] = lambda: quotes
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def player_auth():
    return player_headers


@pytest.fixture
def admin_auth():
    return admin_headers
