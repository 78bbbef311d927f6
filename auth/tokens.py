"""
auth/tokens.py -- Session credential issuance/verification and cookie helpers.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with JWT_SECRET and carry
       user_id, email, role, iat and exp. Verification is a pure function of
       (token, secret, current time) -- no shared state, no locking.

  [T1] Algorithm allow-list: the unverified header is checked before the
       signature. A token whose header names anything other than HS256 is
       rejected as CredentialAlgorithmMismatch, closing the alg-confusion
       forgery vector. jwt.decode() is additionally pinned to HS256.

  [T2] Expiry is checked against the injected clock rather than inside
       python-jose, so tests can move time and the reason for rejection
       (expired vs. bad signature) stays distinguishable.

  [T3] email and role are a snapshot taken at issue time. Nothing revokes an
       unexpired token; logout only clears the cookie.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from auth.errors import CredentialAlgorithmMismatch, CredentialExpired, CredentialSignatureInvalid
from auth.models import Claims
from core.config import Settings

ALGORITHM = "HS256"

AUTH_COOKIE = "auth_token"
STATE_COOKIE = "oauth_state"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _from_timestamp(value) -> datetime:
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


class CredentialService:
    """Issue and verify signed, time-bounded session credentials.

    Usage:
        credentials = CredentialService(secret=settings.jwt_secret)
        token = credentials.issue(42, "a@example.com", "user")
        claims = credentials.verify(token)
    """

    def __init__(
        self,
        secret: str,
        ttl: timedelta = timedelta(hours=24),
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._secret = secret
        self.ttl = ttl
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings) -> CredentialService:
        return cls(secret=settings.jwt_secret, ttl=timedelta(seconds=settings.token_expire_seconds))

    def issue(self, subject_id: int, email: str, role: str) -> str:
        """Encode a signed JWT with the given identity snapshot.

        issuedAt is truncated to whole seconds so that exp - iat is exactly
        the configured lifetime after a round trip through the token.
        """
        issued_at = self._clock().replace(microsecond=0)
        expires_at = issued_at + self.ttl
        payload = {
            "sub": str(subject_id),
            "user_id": subject_id,
            "email": email,
            "role": role,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        return jwt.encode(payload, self._secret, algorithm=ALGORITHM)

    def verify(self, token: str) -> Claims:
        """Decode and verify a JWT, returning its claims.

        Raises:
            CredentialAlgorithmMismatch: header alg is not HS256 [T1].
            CredentialSignatureInvalid: malformed token, bad signature, or
                missing claims.
            CredentialExpired: signature is valid but exp has passed [T2].
        """
        try:
            header = jwt.get_unverified_header(token)
        except JWTError as exc:
            raise CredentialSignatureInvalid() from exc
        if header.get("alg") != ALGORITHM:
            raise CredentialAlgorithmMismatch()

        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                options={"verify_exp": False},
            )
        except JWTError as exc:
            raise CredentialSignatureInvalid() from exc

        try:
            claims = Claims(
                subject_id=int(payload["user_id"]),
                email=str(payload["email"]),
                role=str(payload["role"]),
                issued_at=_from_timestamp(payload["iat"]),
                expires_at=_from_timestamp(payload["exp"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise CredentialSignatureInvalid("Invalid token claims.") from exc

        if self._clock() >= claims.expires_at:
            raise CredentialExpired()
        return claims


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_auth_cookie(response, token: str, settings: Settings) -> None:
    """Write the session credential as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": not sent on cross-site POST.
    max_age: matches the JWT expiry so both expire together.
    """
    response.set_cookie(
        AUTH_COOKIE,
        value=token,
        httponly=True,
        samesite="lax",
        secure=settings.secure_cookies,
        domain=settings.cookie_domain or None,
        max_age=settings.token_expire_seconds,
    )


def set_state_cookie(response, state: str, settings: Settings) -> None:
    """Mirror the correlation token into a short-lived cookie.

    Legacy compatibility only: the callback never reads it, the State Tracker
    is authoritative.
    """
    response.set_cookie(
        STATE_COOKIE,
        value=state,
        httponly=True,
        samesite="lax",
        secure=settings.secure_cookies,
        domain=settings.cookie_domain or None,
        max_age=settings.state_ttl_seconds,
    )


def clear_session_cookies(response, settings: Settings) -> None:
    domain = settings.cookie_domain or None
    response.delete_cookie(AUTH_COOKIE, domain=domain)
    response.delete_cookie(STATE_COOKIE, domain=domain)
