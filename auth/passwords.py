"""
auth/passwords.py -- bcrypt password hashing and verification.

Using bcrypt directly rather than passlib[bcrypt] because passlib's internal
wrap-bug detection creates a password longer than 72 bytes, which bcrypt 4.x
rejects with an explicit error.

bcrypt only reads the first 72 bytes of its input and bcrypt 5 refuses longer
input outright. Registration caps passwords at 20 characters, not bytes, and
20 four-byte code points are 80 bytes of UTF-8. Every password is therefore
reduced to base64(sha256(utf-8 bytes)) -- always 44 ASCII bytes -- before it
reaches bcrypt. hash_password, check_password and equalize_timing all go
through _prehash so stored hashes and checks agree.

A mismatch is a PasswordIncorrectError (caller-correctable). A stored hash
that bcrypt cannot parse is a CredentialHashError (infrastructure) -- a corrupt
row must never be reported to the client as a wrong password.

Layer rule: no imports from api/ or cache/.
"""

from __future__ import annotations

import base64
import hashlib
from functools import lru_cache

import bcrypt

from core.errors import CredentialHashError, PasswordIncorrectError

DEFAULT_ROUNDS = 12


def _prehash(plain: str) -> bytes:
    return base64.b64encode(hashlib.sha256(plain.encode("utf-8")).digest())


def hash_password(plain: str, rounds: int = DEFAULT_ROUNDS) -> str:
    """Return a bcrypt hash of the given plaintext password."""
    return bcrypt.hashpw(_prehash(plain), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def check_password(hashed: str, plain: str) -> None:
    """Raise PasswordIncorrectError unless plain matches the bcrypt hash."""
    try:
        ok = bcrypt.checkpw(_prehash(plain), hashed.encode("utf-8"))
    except ValueError as exc:
        raise CredentialHashError("stored password hash is not a valid bcrypt hash") from exc
    if not ok:
        raise PasswordIncorrectError()


@lru_cache(maxsize=4)
def _dummy_hash(rounds: int) -> str:
    return hash_password("usergate_timing_dummy", rounds)


def equalize_timing(plain: str, rounds: int = DEFAULT_ROUNDS) -> None:
    """Spend one bcrypt verification on a dummy hash.

    Call this when the account does not exist so response time does not reveal
    whether an email is registered. The dummy hash is computed once per cost
    factor and cached, so the first unknown-email login pays two hashes and
    every later one pays exactly one.
    """
    bcrypt.checkpw(_prehash(plain), _dummy_hash(rounds).encode("utf-8"))
