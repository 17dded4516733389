"""
core/errors.py -- Error taxonomy shared by every layer of UserGate.

Two disjoint families:

  ValidationError      caller-correctable. Always carries code, message and the
                       offending field. Raised by the deepest layer that detects
                       the problem and passed through unchanged to the HTTP
                       boundary -- never wrapped, never reclassified.

  InfrastructureError  store unreachable, signing misconfigured, transaction
                       failure. Opaque to the client. Each layer boundary wraps
                       the underlying library exception with `raise ... from exc`
                       so the full chain reaches the server log.

Credential failures at login have two internal variants (EmailNotFoundError,
PasswordIncorrectError) under one base (CredentialsError). The service logs the
variant; the API maps the whole family to a single response so a caller cannot
probe for account existence.

Layer rule: core/ is the kernel. No imports from api/, auth/, or cache/.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Machine codes
# ---------------------------------------------------------------------------

VALIDATION = "validation_error"
UNAUTHORIZED = "unauthorized"
NOT_FOUND = "not_found"


# ---------------------------------------------------------------------------
# Validation (caller-correctable)
# ---------------------------------------------------------------------------


class ValidationError(Exception):
    """A structured, client-correctable rejection."""

    def __init__(self, code: str, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.field = field

    def to_dict(self) -> dict:
        body = {"code": self.code, "message": self.message}
        if self.field:
            body["field"] = self.field
        return body

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r}, field={self.field!r})"


class CredentialsError(ValidationError):
    """Base for login failures that must look identical to the caller."""


class EmailNotFoundError(CredentialsError):
    def __init__(self) -> None:
        super().__init__(VALIDATION, "Email is not found", "email")


class PasswordIncorrectError(CredentialsError):
    def __init__(self) -> None:
        super().__init__(VALIDATION, "Password is incorrect", "password")


# ---------------------------------------------------------------------------
# Infrastructure (opaque to the caller)
# ---------------------------------------------------------------------------


class InfrastructureError(Exception):
    """Base for failures the caller cannot correct."""


class ConfigError(InfrastructureError):
    """Required configuration is missing or unusable (e.g. empty signing secret)."""


class StoreError(InfrastructureError):
    """The account store or session store failed or timed out."""


class DuplicateAccountError(StoreError):
    """A unique constraint fired on insert (lost a registration race)."""


class CredentialHashError(InfrastructureError):
    """A stored password hash could not be parsed by bcrypt."""
