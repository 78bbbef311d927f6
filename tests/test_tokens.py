"""
tests/test_tokens.py -- Unit tests for auth/tokens.py (CredentialService).

Covers:
  - verify(issue(...)) returns the issued claims, exp = iat + 24h
  - wrong secret -> CredentialSignatureInvalid
  - expired but correctly signed -> CredentialExpired
  - header alg other than HS256 -> CredentialAlgorithmMismatch
  - garbage and claim-less tokens -> CredentialSignatureInvalid
"""

from __future__ import annotations

from datetime import timedelta

import pytest
from jose import jwt

from auth.errors import (
    CredentialAlgorithmMismatch,
    CredentialError,
    CredentialExpired,
    CredentialSignatureInvalid,
)
from auth.tokens import CredentialService

SECRET_A = "a" * 32
SECRET_B = "b" * 32


class TestRoundTrip:
    @pytest.mark.parametrize(
        ("subject_id", "email", "role"),
        [(1, "test@example.com", "user"), (42, "boss@example.com", "admin")],
    )
    def test_claims_match_input(self, clock, subject_id, email, role) -> None:
        service = CredentialService(SECRET_A, clock=clock)
        claims = service.verify(service.issue(subject_id, email, role))
        assert claims.subject_id == subject_id
        assert claims.email == email
        assert claims.role == role
        assert claims.issued_at == clock.now
        assert claims.expires_at - claims.issued_at == timedelta(hours=24)

    def test_token_is_hs256(self, clock) -> None:
        token = CredentialService(SECRET_A, clock=clock).issue(1, "a@example.com", "user")
        assert jwt.get_unverified_header(token)["alg"] == "HS256"

    def test_valid_until_just_before_expiry(self, clock) -> None:
        service = CredentialService(SECRET_A, clock=clock)
        token = service.issue(1, "a@example.com", "user")
        clock.advance(hours=23, minutes=59, seconds=59)
        assert service.verify(token).subject_id == 1


class TestRejection:
    def test_other_secret_is_signature_invalid(self, clock) -> None:
        token = CredentialService(SECRET_A, clock=clock).issue(1, "a@example.com", "user")
        with pytest.raises(CredentialSignatureInvalid):
            CredentialService(SECRET_B, clock=clock).verify(token)

    def test_expired_with_valid_signature(self, clock) -> None:
        service = CredentialService(SECRET_A, clock=clock)
        token = service.issue(1, "a@example.com", "user")
        clock.advance(hours=24, seconds=1)
        with pytest.raises(CredentialExpired):
            service.verify(token)

    def test_expired_against_real_clock(self, clock) -> None:
        """A token minted by a clock in 2024 is expired for the wall clock."""
        token = CredentialService(SECRET_A, clock=clock).issue(1, "a@example.com", "user")
        with pytest.raises(CredentialExpired):
            CredentialService(SECRET_A).verify(token)

    def test_other_algorithm_is_rejected(self, clock) -> None:
        payload = {
            "sub": "1",
            "user_id": 1,
            "email": "a@example.com",
            "role": "admin",
            "iat": int(clock.now.timestamp()),
            "exp": int((clock.now + timedelta(hours=1)).timestamp()),
        }
        token = jwt.encode(payload, SECRET_A, algorithm="HS512")
        with pytest.raises(CredentialAlgorithmMismatch):
            CredentialService(SECRET_A, clock=clock).verify(token)

    @pytest.mark.parametrize("token", ["invalid.token.here", "", "not-a-jwt"])
    def test_garbage_is_signature_invalid(self, token) -> None:
        with pytest.raises(CredentialSignatureInvalid):
            CredentialService(SECRET_A).verify(token)

    def test_missing_claims_is_signature_invalid(self, clock) -> None:
        token = jwt.encode({"sub": "1", "exp": int(clock.now.timestamp()) + 60}, SECRET_A, algorithm="HS256")
        with pytest.raises(CredentialSignatureInvalid):
            CredentialService(SECRET_A, clock=clock).verify(token)

    def test_all_rejections_share_a_base_class(self, clock) -> None:
        token = CredentialService(SECRET_A, clock=clock).issue(1, "a@example.com", "user")
        with pytest.raises(CredentialError):
            CredentialService(SECRET_B, clock=clock).verify(token)
