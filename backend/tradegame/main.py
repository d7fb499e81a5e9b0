"""Stock Trading Game — FastAPI Application Entry Point."""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

import tradegame.models  # noqa: F401  (registers every table on Base.metadata)
from tradegame.config import settings
from tradegame.database import engine, Base
from tradegame.exceptions import TradeGameError
from tradegame.middleware.rate_limit import limiter
from tradegame.routers import admin, auth, games, messages, stocks, trades

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# ── CORS origins from env (supports dev localhost + production domain) ──────
_cors_origins = [o.strip() for o in settings.ALLOWED_ORIGINS.split(",") if o.strip()]

app = FastAPI(
    title="Stock Trading Game",
    description="Time-boxed stock trading competitions with live quotes.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(TradeGameError)
async def trade_game_error_handler(request: Request, exc: TradeGameError):
    """Render service-layer failures as ``{"error": kind, "detail": message}``."""
    if exc.status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.kind, "detail": exc.detail},
    )


# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(auth.router)
app.include_router(admin.router)
app.include_router(games.router)
app.include_router(trades.router)
app.include_router(messages.router)
app.include_router(stocks.router)


@app.on_event("startup")
def on_startup():
    """Create all tables."""
    Base.metadata.create_all(bind=engine)
    logger.info("Database ready at %s", engine.url.render_as_string(hide_password=True))


@app.get("/")
def root():
    return {
        "name": "Stock Trading Game API",
        "version": "1.0.0",
        "docs": "/docs",
    }


@app.get("/health")
def health():
    return {"status": "ok"}
