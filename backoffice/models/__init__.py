"""
SQLAlchemy ORM models package.

All models are imported here so that:
  1. Base.metadata knows every table before create_all() runs
  2. Other modules can import from backoffice.models directly
"""

from backoffice.models.user import User, UserRole  # noqa: F401
from backoffice.models.account import Account  # noqa: F401
from backoffice.models.trading_session import TradingSession  # noqa: F401
from backoffice.models.bet import Bet  # noqa: F401
from backoffice.models.transaction import Transaction  # noqa: F401
from backoffice.models.ledger_entry import LedgerEntry  # noqa: F401
from backoffice.models.notification import Notification  # noqa: F401
