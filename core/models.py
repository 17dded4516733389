"""
core/models.py -- Domain dataclasses for accounts and session tokens.

Pure data containers with zero logic. Stores map rows to these; the API layer
maps these to Pydantic response models. Neither direction is allowed to leak a
password hash into a response: Profile is the read projection without it.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

# ---------------------------------------------------------------------------
# Domain constants
# ---------------------------------------------------------------------------

TOKEN_TYPE = "Bearer"


@dataclass
class Account:
    """A durable user row as written by registration.

    password holds the bcrypt hash, never the plaintext.
    id is None before the record is written to the database.
    """

    username: str
    email: str
    password: str
    created_at: datetime
    updated_at: datetime
    id: Optional[int] = None


@dataclass(frozen=True)
class Profile:
    id: int
    username: str
    email: str
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class TokenClaims:
    """Claims embedded in a signed access token. Immutable once minted."""

    user_id: int
    issuer: str
    subject: str
    issued_at: datetime
    not_before: datetime
    expires_at: datetime
    token_id: str  # jti; two tokens minted in the same second still differ


@dataclass(frozen=True)
class TokenPair:
    """The access/refresh pair handed to the client at register and login.

    Only one pair per user is live at a time: writing a new pair to the
    session store makes the previous one unreachable.
    """

    access_token: str
    access_token_expires_in: int  # seconds
    refresh_token: str
    refresh_token_expires_in: int  # seconds
    token_type: str = TOKEN_TYPE
