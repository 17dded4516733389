"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for UserGate happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  Explicit injection: only the composition roots (api/main.py lifespan and
      main.py) call get_settings(). They hand the values to AuthService,
      AccountStore and SessionStore at construction, so the token codec and
      the service stay testable with fixed fixtures.

  @model_validator(mode="after"): cross-field validation once all fields are
      resolved from the environment.

Security notes:
  JWT_SECRET_KEY shorter than 32 chars is rejected outright. HMAC-SHA256
  signing relies on key entropy -- a short key weakens every token.

  A missing JWT_SECRET_KEY is NOT a startup failure in production mode. The
  process starts (health checks and registration validation still work) and
  every mint/verify fails with ConfigError, which the API reports as a
  generic 500. In debug mode a throwaway key is generated instead.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/, or cache/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("usergate.config")


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.

    Environment variable name mapping: field names are uppercased automatically.
    E.g. `jwt_secret_key` reads from JWT_SECRET_KEY, `debug` reads from DEBUG.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    log_level: str = "INFO"

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured".
    jwt_secret_key: str = ""
    token_issuer: str = "usergate"
    access_token_expire_seconds: int = 15 * 60
    refresh_token_expire_seconds: int = 7 * 24 * 60 * 60
    # Tolerated clock skew when checking exp/nbf on incoming tokens.
    token_leeway_seconds: int = 0

    # ------------------------------------------------------------------
    # Passwords
    # ------------------------------------------------------------------

    # bcrypt cost 12 is ~250ms per hash on commodity hardware.
    bcrypt_rounds: int = 12

    # ------------------------------------------------------------------
    # Stores
    # ------------------------------------------------------------------

    database_url: str = "sqlite:///usergate.db"
    redis_url: str = "redis://localhost:6379/0"
    # Upper bound for any single store round-trip (DB statement, pool checkout,
    # redis socket). Exceeding it raises StoreError.
    store_timeout_seconds: float = 5.0

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("bcrypt_rounds")
    @classmethod
    def validate_bcrypt_rounds(cls, value: int) -> int:
        # bcrypt.gensalt() accepts 4..31
        if not 4 <= value <= 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31.")
        return value

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the JWT_SECRET_KEY policy.

        Debug mode (DEBUG=true): auto-generate a random key with a warning.
            Sessions will not survive restart -- acceptable for local dev.

        Production mode: leave the key empty and warn loudly. The token codec
            raises ConfigError at mint/verify time.

        Both modes: reject configured keys shorter than 32 characters.
        """
        if not self.jwt_secret_key:
            if self.debug:
                self.jwt_secret_key = secrets.token_hex(32)
                logger.warning("Using auto-generated JWT_SECRET_KEY. Sessions will not persist across restarts.")
            else:
                logger.warning("JWT_SECRET_KEY is not set. Token issuance and verification will fail.")
            return self
        if len(self.jwt_secret_key) < 32:
            raise ValueError("JWT_SECRET_KEY must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
