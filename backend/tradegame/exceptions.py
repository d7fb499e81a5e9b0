"""Typed failures raised by the service layer.

Each error carries the HTTP status it maps to at the request boundary and a
stable ``kind`` name that clients can switch on.
"""


class TradeGameError(Exception):
    status_code = 400

    def __init__(self, detail: str = ""):
        super().__init__(detail or self.kind)
        self.detail = detail or self.kind

    @property
    def kind(self) -> str:
        return type(self).__name__


# ── Lookups ──────────────────────────────────────────────────────────────────

class PlayerNotFound(TradeGameError):
    status_code = 404


class GameNotFound(TradeGameError):
    status_code = 404


class PlayerNotInGame(TradeGameError):
    status_code = 404


# ── Player / game state ─────────────────────────────────────────────────────

class PlayerNotActive(TradeGameError):
    status_code = 400


class PlayerAlreadyActive(TradeGameError):
    status_code = 409


class GameNotEnded(TradeGameError):
    status_code = 400


class GameEnded(TradeGameError):
    status_code = 400


class GameAlreadyStarted(TradeGameError):
    status_code = 400


class InvalidGameSchedule(TradeGameError):
    status_code = 400


class ConflictingState(TradeGameError):
    status_code = 409


# ── Trading ──────────────────────────────────────────────────────────────────

class InvalidQuantity(TradeGameError):
    status_code = 400


class InsufficientFunds(TradeGameError):
    status_code = 400


class InsufficientHoldings(TradeGameError):
    status_code = 400


# ── Quote provider ──────────────────────────────────────────────────────────

class QuoteUnavailable(TradeGameError):
    """The provider answered but has no usable price for the symbol."""

    status_code = 404


class QuoteSourceError(TradeGameError):
    """Transport failure, timeout, non-2xx or malformed provider payload."""

    status_code = 502


# ── Accounts ─────────────────────────────────────────────────────────────────

class AccountExists(TradeGameError):
    status_code = 409


class InvalidCredentials(TradeGameError):
    status_code = 401
