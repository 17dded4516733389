"""
auth/service.py -- Registration, login, profile lookup and bearer validation.

AuthService is the only place that combines the account store, the session
store and the token codec. Every collaborator and every secret is passed in
at construction; nothing here reads settings or module globals.

Register ordering (the invariants live in the ordering):
  1. shape validation, first failure wins
  2. uniqueness query (username OR email, one round-trip)
  3. bcrypt hash + timestamps
  4. BEGIN; insert; mint pair; COMMIT
       -- minting inside the transaction means a signing failure rolls the
          insert back: no account is left without a session-capable id
  5. write the session slot (after commit: never a session without an account)
A crash between 4 and 5 leaves an account with no session. That is accepted;
the user can log in.

Login failures have two internal variants (EmailNotFoundError,
PasswordIncorrectError). Both are logged with their own reason here and both
reach the API as CredentialsError, which maps them to one response.

validate_bearer() is the Request Gate's state machine:
  NO_TOKEN -> HEADER_EXTRACTED -> SIGNATURE_VERIFIED -> SESSION_MATCHED -> AUTHORIZED
A ValidationError at any arrow rejects the request; the stage reached is logged.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from auth.passwords import check_password, equalize_timing, hash_password
from auth.store import AccountStore
from auth.tokens import extract_bearer_token, mint_token_pair, verify_token
from cache.store import SessionStore
from core.errors import (
    NOT_FOUND,
    VALIDATION,
    CredentialsError,
    DuplicateAccountError,
    EmailNotFoundError,
    ValidationError,
)
from core.models import Account, Profile, TokenPair

logger = logging.getLogger("usergate.auth")

# ---------------------------------------------------------------------------
# Field rules: (field, label, min length, max length)
# ---------------------------------------------------------------------------

USERNAME_RULE = ("username", "Username", 4, 22)
EMAIL_RULE = ("email", "Email", 16, 80)
PASSWORD_RULE = ("password", "Password", 5, 20)


def _check_field(value: str, rule: tuple[str, str, int, int]) -> None:
    field, label, min_len, max_len = rule
    if not value:
        raise ValidationError(VALIDATION, f"{label} is required to not be empty", field)
    if len(value) < min_len:
        raise ValidationError(VALIDATION, f"{label} must be at least {min_len} characters", field)
    if len(value) > max_len:
        raise ValidationError(VALIDATION, f"{label} must be at most {max_len} characters", field)


def _collision_error(field: str) -> ValidationError:
    label = "Username" if field == "username" else "Email"
    return ValidationError(VALIDATION, f"{label} is already exist", field)


# ---------------------------------------------------------------------------
# Payloads
# ---------------------------------------------------------------------------


@dataclass
class RegisterPayload:
    username: str
    email: str
    password: str

    def __repr__(self) -> str:
        return f"RegisterPayload(username={self.username!r}, email={self.email!r}, password='***')"


@dataclass
class LoginPayload:
    email: str
    password: str

    def __repr__(self) -> str:
        return f"LoginPayload(email={self.email!r}, password='***')"


class GateStage(enum.Enum):
    NO_TOKEN = "no_token"
    HEADER_EXTRACTED = "header_extracted"
    SIGNATURE_VERIFIED = "signature_verified"
    SESSION_MATCHED = "session_matched"
    AUTHORIZED = "authorized"


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class AuthService:
    def __init__(
        self,
        accounts: AccountStore,
        sessions: SessionStore,
        *,
        secret: str,
        issuer: str = "usergate",
        access_expires_in: int = 15 * 60,
        refresh_expires_in: int = 7 * 24 * 60 * 60,
        leeway: int = 0,
        bcrypt_rounds: int = 12,
    ) -> None:
        self.accounts = accounts
        self.sessions = sessions
        self._secret = secret
        self.issuer = issuer
        self.access_expires_in = access_expires_in
        self.refresh_expires_in = refresh_expires_in
        self.leeway = leeway
        self.bcrypt_rounds = bcrypt_rounds

    @classmethod
    def from_settings(cls, settings, accounts: AccountStore, sessions: SessionStore) -> "AuthService":
        return cls(
            accounts,
            sessions,
            secret=settings.jwt_secret_key,
            issuer=settings.token_issuer,
            access_expires_in=settings.access_token_expire_seconds,
            refresh_expires_in=settings.refresh_token_expire_seconds,
            leeway=settings.token_leeway_seconds,
            bcrypt_rounds=settings.bcrypt_rounds,
        )

    def _mint(self, user_id: int) -> TokenPair:
        return mint_token_pair(
            user_id,
            self._secret,
            issuer=self.issuer,
            access_expires_in=self.access_expires_in,
            refresh_expires_in=self.refresh_expires_in,
        )

    # ------------------------------------------------------------------
    # Register
    # ------------------------------------------------------------------

    def register(self, payload: RegisterPayload) -> TokenPair:
        """Create an account and open its first session."""
        _check_field(payload.username, USERNAME_RULE)
        _check_field(payload.email, EMAIL_RULE)
        _check_field(payload.password, PASSWORD_RULE)

        collision = self.accounts.find_collision(payload.username, payload.email)
        if collision is not None:
            raise _collision_error(collision)

        now = datetime.now(timezone.utc)
        account = Account(
            username=payload.username,
            email=payload.email,
            password=hash_password(payload.password, self.bcrypt_rounds),
            created_at=now,
            updated_at=now,
        )

        try:
            with self.accounts.transaction() as conn:
                user_id = self.accounts.insert_user(conn, account)
                pair = self._mint(user_id)
        except DuplicateAccountError as exc:
            # Lost a race with a concurrent registration between the
            # uniqueness query and the insert.
            collision = self.accounts.find_collision(payload.username, payload.email)
            raise _collision_error(collision or "email") from exc

        self.sessions.replace(user_id, pair)
        logger.info("Registered user %d", user_id)
        return pair

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(self, payload: LoginPayload) -> TokenPair:
        """Verify credentials and replace the user's session with a fresh pair."""
        _check_field(payload.email, EMAIL_RULE)
        _check_field(payload.password, PASSWORD_RULE)

        try:
            credentials = self.accounts.find_credentials(payload.email)
            if credentials is None:
                equalize_timing(payload.password, self.bcrypt_rounds)
                raise EmailNotFoundError()
            user_id, password_hash = credentials
            check_password(password_hash, payload.password)
        except CredentialsError as exc:
            logger.info("Login rejected: %s", exc.message)
            raise

        pair = self._mint(user_id)
        self.sessions.replace(user_id, pair)
        logger.info("User %d logged in", user_id)
        return pair

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    def get_user_info(self, user_id: int) -> Profile:
        profile = self.accounts.find_by_id(user_id)
        if profile is None:
            raise ValidationError(NOT_FOUND, "User not found", "userId")
        return profile

    # ------------------------------------------------------------------
    # Request Gate
    # ------------------------------------------------------------------

    def validate_bearer(self, auth_header: str | None) -> int:
        """Resolve an Authorization header to a live user id.

        Raises ValidationError when the header, the token or the session slot
        rejects it; ConfigError / StoreError for infrastructure failures.
        """
        stage = GateStage.NO_TOKEN
        try:
            raw_token = extract_bearer_token(auth_header)
            stage = GateStage.HEADER_EXTRACTED

            user_id = verify_token(raw_token, self._secret, issuer=self.issuer, leeway=self.leeway)
            stage = GateStage.SIGNATURE_VERIFIED

            cached = self.sessions.current_access_token(user_id)
            if cached is None:
                raise ValidationError(NOT_FOUND, "Authorization token not found or expired", "accessToken")
            if cached != raw_token:
                raise ValidationError(NOT_FOUND, "Authorization token is expired", "accessToken")
            stage = GateStage.SESSION_MATCHED
        except ValidationError as exc:
            logger.debug("Gate rejected request after %s: %s", stage.value, exc.message)
            raise

        stage = GateStage.AUTHORIZED
        logger.debug("Gate %s user %d", stage.value, user_id)
        return user_id

