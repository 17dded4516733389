"""
tests/test_passwords.py -- Unit tests for auth/passwords.py.

Uses the minimum bcrypt cost (4) throughout to keep the suite fast.
"""

import pytest

from auth.passwords import check_password, equalize_timing, hash_password
from core.errors import CredentialHashError, CredentialsError, InfrastructureError, PasswordIncorrectError

ROUNDS = 4


class TestHashPassword:
    def test_hash_is_not_plaintext(self):
        hashed = hash_password("s3cret!", ROUNDS)
        assert hashed != "s3cret!"
        assert hashed.startswith("$2")

    def test_same_password_hashes_differently(self):
        assert hash_password("s3cret!", ROUNDS) != hash_password("s3cret!", ROUNDS)

    def test_cost_factor_is_encoded(self):
        assert hash_password("s3cret!", ROUNDS).split("$")[2] == "04"


class TestCheckPassword:
    def test_match_returns_none(self):
        hashed = hash_password("s3cret!", ROUNDS)
        assert check_password(hashed, "s3cret!") is None

    def test_mismatch_is_password_incorrect(self):
        hashed = hash_password("s3cret!", ROUNDS)
        with pytest.raises(PasswordIncorrectError) as exc_info:
            check_password(hashed, "wrong!")
        err = exc_info.value
        assert isinstance(err, CredentialsError)
        assert err.field == "password"
        assert err.message == "Password is incorrect"

    def test_corrupt_hash_is_infrastructure(self):
        """A row bcrypt cannot parse must not read as a wrong password."""
        with pytest.raises(CredentialHashError) as exc_info:
            check_password("not-a-bcrypt-hash", "s3cret!")
        assert isinstance(exc_info.value, InfrastructureError)
        assert not isinstance(exc_info.value, CredentialsError)


class TestEqualizeTiming:
    def test_runs_without_raising(self):
        assert equalize_timing("anything", ROUNDS) is None

    def test_never_raises_for_matching_input(self):
        assert equalize_timing("usergate_timing_dummy", ROUNDS) is None


class TestMultibytePasswords:
    """20 characters can be up to 80 bytes of UTF-8, past bcrypt's 72-byte input."""

    KEY = "\U0001F511" * 19  # 76 bytes

    def test_long_utf8_password_round_trips(self):
        hashed = hash_password(self.KEY, ROUNDS)
        assert check_password(hashed, self.KEY) is None

    def test_long_utf8_password_mismatch(self):
        hashed = hash_password(self.KEY, ROUNDS)
        with pytest.raises(PasswordIncorrectError):
            check_password(hashed, "\U0001F511" * 18 + "x")

    def test_passwords_sharing_72_byte_prefix_differ(self):
        hashed = hash_password(self.KEY + "a", ROUNDS)
        with pytest.raises(PasswordIncorrectError):
            check_password(hashed, self.KEY + "b")

    def test_equalize_timing_accepts_long_utf8(self):
        assert equalize_timing(self.KEY, ROUNDS) is None
