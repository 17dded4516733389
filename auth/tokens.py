"""
auth/tokens.py -- Access/refresh token minting and bearer verification.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry userId plus the registered claims
       iss, sub, iat, nbf, exp and a random jti, so two tokens minted for the
       same user within one second are still distinct strings. The secret
       is an explicit argument on every call -- this module never reads
       settings, so tests can mint and verify with fixed keys.

  Anti-downgrade: the unverified header is inspected BEFORE any signature
       work. Any alg outside the HMAC family (notably "none" and the RS/ES
       families, which would let an attacker sign with a public key) is
       rejected with its own message. jose's algorithms= whitelist would also
       refuse these, but only with a generic error.

  Error mapping: every jose failure becomes a ValidationError with the same
       code ("unauthorized") and a precise message (malformed / expired /
       not valid yet / invalid signing method / invalid). Library detail and
       stack traces never leave this module.

  Refresh tokens: uuid4 strings. They carry no claims and cannot be verified
       on their own -- they are a lookup key into the session store only.

Layer rule: no imports from api/ or cache/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone

from jose import jwt
from jose.exceptions import ExpiredSignatureError, JWTClaimsError, JWTError

from core.errors import UNAUTHORIZED, ConfigError, ValidationError
from core.models import TOKEN_TYPE, TokenClaims, TokenPair

logger = logging.getLogger("usergate.auth")

BEARER_PREFIX = f"{TOKEN_TYPE} "

_ALGORITHM = "HS256"
_HMAC_ALGORITHMS = ("HS256", "HS384", "HS512")
_FIELD = "accessToken"

# jose reports a future nbf as a JWTClaimsError with this text.
_NOT_YET_VALID_MARKER = "not yet valid"


def _unauthorized(message: str) -> ValidationError:
    return ValidationError(UNAUTHORIZED, message, _FIELD)


def _require_secret(secret: str) -> None:
    if not secret:
        raise ConfigError("jwt secret key is not configured")


# ---------------------------------------------------------------------------
# Minting
# ---------------------------------------------------------------------------


def build_claims(user_id: int, *, issuer: str, expires_in: int, now: datetime | None = None) -> TokenClaims:
    """Return the claim set for a new access token issued at `now`."""
    issued_at = now or datetime.now(timezone.utc)
    return TokenClaims(
        user_id=user_id,
        issuer=issuer,
        subject=f"user:{user_id}",
        issued_at=issued_at,
        not_before=issued_at,
        expires_at=issued_at + timedelta(seconds=expires_in),
        token_id=uuid.uuid4().hex,
    )


def mint_access_token(
    user_id: int,
    secret: str,
    *,
    issuer: str,
    expires_in: int,
    now: datetime | None = None,
) -> str:
    """Encode a signed HS256 access token for user_id.

    Args:
        user_id:    Account id assigned by the account store.
        secret:     HMAC signing key. Empty -> ConfigError.
        issuer:     Value of the iss claim; verification checks it.
        expires_in: Lifetime in seconds.
        now:        Issue time. Defaults to the current UTC time; tests pass a
                    fixed value to produce expired or not-yet-valid tokens.
    """
    _require_secret(secret)
    claims = build_claims(user_id, issuer=issuer, expires_in=expires_in, now=now)
    payload = {
        "userId": claims.user_id,
        "iss": claims.issuer,
        "sub": claims.subject,
        "iat": claims.issued_at,
        "nbf": claims.not_before,
        "exp": claims.expires_at,
        "jti": claims.token_id,
    }
    try:
        return jwt.encode(payload, secret, algorithm=_ALGORITHM)
    except JWTError as exc:
        raise ConfigError(f"failed to sign token: {exc}") from exc


def mint_refresh_token() -> str:
    return str(uuid.uuid4())


def mint_token_pair(
    user_id: int,
    secret: str,
    *,
    issuer: str,
    access_expires_in: int,
    refresh_expires_in: int,
) -> TokenPair:
    """Mint a fresh access + refresh pair for user_id."""
    access_token = mint_access_token(user_id, secret, issuer=issuer, expires_in=access_expires_in)
    return TokenPair(
        access_token=access_token,
        access_token_expires_in=access_expires_in,
        refresh_token=mint_refresh_token(),
        refresh_token_expires_in=refresh_expires_in,
    )


# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------


def extract_bearer_token(auth_header: str | None) -> str:
    """Return the token from an exact "Bearer <token>" header value.

    The prefix is case-sensitive with a single separating space.
    """
    if not auth_header:
        raise _unauthorized("No authentication token is provided")
    if not auth_header.startswith(BEARER_PREFIX):
        raise _unauthorized("Authentication token format is not match")
    token = auth_header[len(BEARER_PREFIX) :]
    if not token:
        raise _unauthorized("Authentication token is empty")
    return token


def verify_bearer(
    auth_header: str | None,
    secret: str,
    *,
    issuer: str,
    leeway: int = 0,
) -> tuple[str, int]:
    """Verify an Authorization header value and return (raw_token, user_id).

    Raises ConfigError if the secret is empty, ValidationError (code
    "unauthorized") for anything wrong with the header or the token.
    Signature validity is necessary but not sufficient: the caller must
    still match raw_token against the session store.
    """
    _require_secret(secret)
    token = extract_bearer_token(auth_header)
    return token, verify_token(token, secret, issuer=issuer, leeway=leeway)


def verify_token(token: str, secret: str, *, issuer: str, leeway: int = 0) -> int:
    """Verify an already extracted access token and return its user id."""
    _require_secret(secret)

    try:
        header = jwt.get_unverified_header(token)
    except JWTError as exc:
        raise _unauthorized("Authentication token is malformed") from exc

    if header.get("alg") not in _HMAC_ALGORITHMS:
        logger.warning("Rejected token with signing method %r", header.get("alg"))
        raise _unauthorized("Authentication token has invalid signing method")

    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=list(_HMAC_ALGORITHMS),
            issuer=issuer,
            options={"leeway": leeway, "require_exp": True, "require_nbf": True},
        )
    except ExpiredSignatureError as exc:
        raise _unauthorized("Authentication token is expired") from exc
    except JWTClaimsError as exc:
        if _NOT_YET_VALID_MARKER in str(exc):
            raise _unauthorized("Authentication token is not valid yet") from exc
        raise _unauthorized("Authentication token is invalid") from exc
    except JWTError as exc:
        raise _unauthorized("Authentication token is invalid") from exc

    user_id = payload.get("userId")
    if not isinstance(user_id, int) or isinstance(user_id, bool):
        raise _unauthorized("Authentication token is invalid")

    return user_id
