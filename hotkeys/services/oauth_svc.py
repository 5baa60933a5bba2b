from __future__ import annotations

import logging
import secrets
import time
from collections.abc import Callable
from typing import Any
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel, Field

from hotkeys.core.config import Settings
from hotkeys.core.exceptions import ConfigurationError, OAuthError
from hotkeys.storage.token_store import TTLStore

logger = logging.getLogger(__name__)

STATE_TTL_SECONDS = 10 * 60
TOKEN_TTL_SECONDS = 60 * 60
# A token with a refresh token stays usable long after its access token expires.
REFRESHABLE_TOKEN_TTL_SECONDS = 30 * 24 * 60 * 60
# Tokens are treated as expired this long before the provider says they are.
EXPIRY_MARGIN_SECONDS = 10 * 60
DEFAULT_SCOPE = "read identity"


class OAuthToken(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int = 3600
    scope: str = ""
    refresh_token: str | None = None
    obtained_at: float = 0.0
    identity: dict[str, Any] = Field(default_factory=dict)

    def is_fresh(self, now: float) -> bool:
        return now - self.obtained_at < max(self.expires_in - EXPIRY_MARGIN_SECONDS, 0)


class RedditOAuthClient:
    """
    Authorization-code and client-credentials flows against Reddit.

    State values and user tokens live in bounded TTL stores owned by this
    instance. ``get_token()`` is what the Reddit source calls: it prefers a
    fresh user token, refreshes a stale one, and falls back to an app-only
    token. It returns None instead of raising when nothing is available.
    """

    AUTHORIZE_URL = "https://www.reddit.com/api/v1/authorize"
    TOKEN_URL = "https://www.reddit.com/api/v1/access_token"
    IDENTITY_URL = "https://oauth.reddit.com/api/v1/me"

    def __init__(
        self,
        settings: Settings,
        state_store: TTLStore[float] | None = None,
        token_store: TTLStore[OAuthToken] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.client_id = settings.REDDIT_CLIENT_ID
        self.client_secret = settings.REDDIT_CLIENT_SECRET
        self.redirect_uri = settings.REDDIT_REDIRECT_URI
        self.user_agent = f"{settings.REDDIT_USER_AGENT} OAuth Client"
        self.timeout = settings.REQUEST_TIMEOUT_SECONDS
        self.clock = clock
        self.state_store = state_store or TTLStore(STATE_TTL_SECONDS, max_entries=128, clock=clock)
        self.token_store = token_store or TTLStore(TOKEN_TTL_SECONDS, max_entries=32, clock=clock)
        self._app_token: OAuthToken | None = None

    @property
    def has_client_credentials(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def _require_client_credentials(self) -> None:
        if not self.has_client_credentials:
            raise ConfigurationError("REDDIT_CLIENT_ID and REDDIT_CLIENT_SECRET must be configured")

    def build_authorize_url(self, scope: str = DEFAULT_SCOPE, duration: str = "temporary") -> tuple[str, str]:
        """Return (authorize URL, state) and remember the state for the callback."""
        self._require_client_credentials()
        if not self.redirect_uri:
            raise ConfigurationError("REDDIT_REDIRECT_URI must be configured")
        state = secrets.token_hex(16)
        self.state_store.set(state, self.clock())
        query = urlencode(
            {
                "client_id": self.client_id,
                "response_type": "code",
                "state": state,
                "redirect_uri": self.redirect_uri,
                "duration": duration,
                "scope": scope,
            }
        )
        return f"{self.AUTHORIZE_URL}?{query}", state

    def consume_state(self, state: str | None) -> bool:
        """Validate and forget a state value. Each state is usable once."""
        self.state_store.sweep()
        if not state:
            return False
        return self.state_store.pop(state) is not None

    async def _token_request(self, data: dict[str, str]) -> OAuthToken:
        self._require_client_credentials()
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.TOKEN_URL,
                    data=data,
                    auth=(self.client_id or "", self.client_secret or ""),
                    headers={"User-Agent": self.user_agent},
                )
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPStatusError as exc:
            raise OAuthError(f"Token request failed with status {exc.response.status_code}") from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise OAuthError(f"Token request failed: {exc}") from exc

        if not isinstance(payload, dict) or "access_token" not in payload:
            error = payload.get("error") if isinstance(payload, dict) else None
            raise OAuthError(f"Token response missing access_token ({error or 'unknown error'})")
        return OAuthToken.model_validate({**payload, "obtained_at": self.clock()})

    async def exchange_code(self, code: str) -> OAuthToken:
        token = await self._token_request(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.redirect_uri or "",
            }
        )
        logger.info("Obtained Reddit user access token")
        return token

    async def refresh(self, refresh_token: str) -> OAuthToken:
        token = await self._token_request({"grant_type": "refresh_token", "refresh_token": refresh_token})
        if not token.refresh_token:
            token = token.model_copy(update={"refresh_token": refresh_token})
        return token

    async def fetch_identity(self, access_token: str) -> dict[str, Any]:
        """Best effort: an identity lookup failure never invalidates a token."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(
                    self.IDENTITY_URL,
                    headers={"Authorization": f"Bearer {access_token}", "User-Agent": self.user_agent},
                )
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Failed to fetch Reddit identity: %s", exc)
            return {}
        return payload if isinstance(payload, dict) else {}

    def store_token(self, token: OAuthToken) -> str:
        token_id = secrets.token_urlsafe(12)
        ttl = REFRESHABLE_TOKEN_TTL_SECONDS if token.refresh_token else None
        self.token_store.set(token_id, token, ttl=ttl)
        return token_id

    async def complete_authorization(self, code: str, state: str | None) -> tuple[str, OAuthToken]:
        """Callback handling: validate state, exchange code, store the token."""
        if not self.consume_state(state):
            raise OAuthError("Invalid or expired authorization state")
        token = await self.exchange_code(code)
        identity = await self.fetch_identity(token.access_token)
        token = token.model_copy(update={"identity": identity})
        token_id = self.store_token(token)
        logger.info("Reddit OAuth authorised for %s", identity.get("name", "unknown user"))
        return token_id, token

    def get_token_info(self, token_id: str) -> OAuthToken | None:
        return self.token_store.get(token_id)

    async def get_app_token(self) -> str | None:
        """Application-only token via client credentials, cached until it goes stale."""
        if not self.has_client_credentials:
            return None
        now = self.clock()
        if self._app_token is not None and self._app_token.is_fresh(now):
            return self._app_token.access_token
        try:
            self._app_token = await self._token_request({"grant_type": "client_credentials"})
        except OAuthError as exc:
            logger.error("Failed to obtain Reddit app token: %s", exc)
            self._app_token = None
            return None
        return self._app_token.access_token

    async def get_token(self) -> str | None:
        """Bearer token for the Reddit source, or None when none can be obtained."""
        self.token_store.sweep()
        user_token = self.token_store.newest()
        if user_token is not None:
            if user_token.is_fresh(self.clock()):
                return user_token.access_token
            if user_token.refresh_token and self.has_client_credentials:
                try:
                    refreshed = await self.refresh(user_token.refresh_token)
                except OAuthError as exc:
                    logger.warning("Failed to refresh Reddit user token: %s", exc)
                else:
                    self.store_token(refreshed.model_copy(update={"identity": user_token.identity}))
                    return refreshed.access_token
        return await self.get_app_token()

    def status(self) -> dict[str, int]:
        self.state_store.sweep()
        self.token_store.sweep()
        return {"pending_states": len(self.state_store), "active_tokens": len(self.token_store)}
