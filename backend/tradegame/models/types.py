"""Shared column types."""

from sqlalchemy import Numeric

# Cash and prices. Stored as fixed-point so balances never drift.
MONEY = Numeric(18, 4, asdecimal=True)
