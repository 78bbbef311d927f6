"""
auth/oauth.py -- Google OAuth 2.0 authorization-code exchange.

IdentityExchanger builds the consent URL around a correlation token and, on
callback, trades the authorization code for an access token and fetches the
user's profile. It uses authlib's requests-backed OAuth2Session so both
provider calls are plain blocking HTTP with explicit timeouts; the callback
route runs in FastAPI's threadpool.

Security notes:
  [O1] The state parameter is issued and verified by auth.state.StateTracker,
       never by this module. build_authorization_url() only embeds it.

  [O2] Authorization codes are single-use, so nothing here retries. Every
       failure maps to exactly one AuthError subclass:
         transport failure or provider rejection -> CodeExchangeFailed
         profile request failure                 -> ProfileFetchFailed
         unreadable or incomplete profile        -> MalformedProfile
         provider says the email is unverified   -> MalformedProfile [O4]

  [O3] Each provider call gets min(per-call timeout, time left before the
       caller's deadline). If the deadline has already passed the call is not
       made at all, so a cancelled exchange commits nothing.

  [O4] An email the provider reports as unverified (verified_email false) is
       refused. Email is a unique account key, so an unconfirmed address
       could claim a victim's account slot.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

import requests
from authlib.integrations.requests_client import OAuth2Session, OAuthError

from auth.errors import AuthError, CodeExchangeFailed, MalformedProfile, ProfileFetchFailed
from auth.models import CorrelationToken, ExternalIdentity
from core.config import Settings

logger = logging.getLogger("surfer.auth.oauth")


class IdentityExchanger:
    """Drive the authorization-code flow against the configured provider.

    session_factory is the OAuth2Session class by default; tests pass a
    callable returning a mock session.
    """

    def __init__(self, settings: Settings, session_factory: Callable[..., OAuth2Session] = OAuth2Session) -> None:
        self._client_id = settings.google_client_id
        self._client_secret = settings.google_client_secret
        self._redirect_uri = settings.google_redirect_url
        self._scope = " ".join(settings.oauth_scopes)
        self._authorize_url = settings.google_authorize_url
        self._token_url = settings.google_token_url
        self._userinfo_url = settings.google_userinfo_url
        self._timeout = settings.oauth_http_timeout_seconds
        self._session_factory = session_factory
        if not (self._client_id and self._client_secret):
            logger.warning("GOOGLE_CLIENT_ID / GOOGLE_CLIENT_SECRET not set; Google login will fail")

    def _session(self) -> OAuth2Session:
        return self._session_factory(
            client_id=self._client_id,
            client_secret=self._client_secret,
            scope=self._scope,
            redirect_uri=self._redirect_uri,
        )

    def build_authorization_url(self, token: CorrelationToken | str) -> str:
        """Return the provider consent URL carrying the token as state [O1]."""
        state = token.value if isinstance(token, CorrelationToken) else token
        url, _ = self._session().create_authorization_url(self._authorize_url, state=state)
        return url

    def exchange(self, code: str | None, deadline: float | None = None) -> ExternalIdentity:
        """Trade an authorization code for the caller's ExternalIdentity.

        Args:
            code:     The code query parameter from the provider callback.
            deadline: Optional time.monotonic() value after which no further
                      provider call is attempted [O3].

        Raises:
            CodeExchangeFailed, ProfileFetchFailed, MalformedProfile [O2].
        """
        if not code:
            raise CodeExchangeFailed("Missing authorization code.")

        session = self._session()
        try:
            session.fetch_token(
                self._token_url,
                code=code,
                timeout=self._call_timeout(deadline, CodeExchangeFailed),
            )
        except (OAuthError, requests.RequestException, ValueError) as exc:
            logger.warning("OAuth code exchange failed: %s", type(exc).__name__)
            raise CodeExchangeFailed() from exc

        try:
            resp = session.get(self._userinfo_url, timeout=self._call_timeout(deadline, ProfileFetchFailed))
            resp.raise_for_status()
        except requests.RequestException as exc:
            logger.warning("OAuth profile fetch failed: %s", type(exc).__name__)
            raise ProfileFetchFailed() from exc

        try:
            payload = resp.json()
        except ValueError as exc:
            raise MalformedProfile() from exc
        return profile_to_identity(payload)

    def _call_timeout(self, deadline: float | None, error: type[AuthError]) -> float:
        if deadline is None:
            return self._timeout
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            logger.warning("OAuth exchange deadline exceeded before provider call")
            raise error("The identity provider did not respond in time.")
        return min(self._timeout, remaining)


def profile_to_identity(payload) -> ExternalIdentity:
    """Normalize a Google v2 userinfo document into an ExternalIdentity.

    id and email are required; name and picture default to "".
    A verified_email of false is refused [O4]; an absent flag is accepted.
    """
    if not isinstance(payload, dict):
        raise MalformedProfile()
    subject_id = payload.get("id")
    email = payload.get("email")
    if isinstance(subject_id, int) and not isinstance(subject_id, bool):
        subject_id = str(subject_id)
    if not isinstance(subject_id, str) or not subject_id:
        raise MalformedProfile("Profile is missing the account id.")
    if not isinstance(email, str) or not email:
        raise MalformedProfile("Profile is missing the email address.")
    if payload.get("verified_email") is False:
        raise MalformedProfile("Provider has not verified this email address.")
    name = payload.get("name") or ""
    picture = payload.get("picture") or ""
    if not isinstance(name, str) or not isinstance(picture, str):
        raise MalformedProfile()
    return ExternalIdentity(subject_id=subject_id, email=email, name=name, picture=picture)
