"""SQLAlchemy ORM models for Smile Accounts.

All models are exported from this module for convenient imports:
    from smile_accounts.models import Account, Device, AccountToken

- account.py: Account (identity record)
- device.py: Device (child of Account, ordered)
- token.py: AccountToken, TokenPurpose (single-use tokens)
"""

from smile_accounts.models.account import Account
from smile_accounts.models.base import Base
from smile_accounts.models.device import Device
from smile_accounts.models.token import AccountToken, TokenPurpose

__all__ = [
    "Base",
    "Account",
    "Device",
    "AccountToken",
    "TokenPurpose",
]
