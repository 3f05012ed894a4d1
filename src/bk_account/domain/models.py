"""Domain models for bk_account: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal


@dataclass
class Account:
    id: str
    user_id: str
    balance: Decimal         # currency, 2 dp, never negative
    version: int             # bumped on every balance change (CAS token)
    created_at: datetime | None = None
    updated_at: datetime | None = None
