"""App-only OAuth tokens (client-credentials grant).

Hey future me - Spotify, Tidal and SoundCloud all hand out app tokens the same
way: POST client id + secret to a token URL, get back access_token/expires_in.
This class fetches lazily, caches until shortly before expiry and refreshes
under a lock, so a burst of parallel lookups triggers ONE token request.

The only difference between providers is where the credentials go:
- Basic auth header (Spotify, Tidal)
- form fields client_id/client_secret (SoundCloud)
"""

import asyncio
import base64
import logging
import time
from typing import cast

import httpx

from tunebridge.domain.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

# Refresh the token this many seconds before the provider says it expires
TOKEN_EXPIRY_MARGIN_SECONDS = 60


class ClientCredentialsToken:
    """Cached app token for one provider."""

    def __init__(
        self,
        provider: str,
        token_url: str,
        client_id: str,
        client_secret: str,
        credentials_in_body: bool = False,
    ) -> None:
        """Initialize token cache.

        Args:
            provider: Provider name for errors and logs
            token_url: OAuth token endpoint
            client_id: App client id
            client_secret: App client secret
            credentials_in_body: Send credentials as form fields instead of Basic auth
        """
        self.provider = provider
        self.token_url = token_url
        self._client_id = client_id
        self._client_secret = client_secret
        self._credentials_in_body = credentials_in_body
        self._access_token: str | None = None
        self._expires_at: float = 0.0
        self._lock = asyncio.Lock()

    def invalidate(self) -> None:
        """Drop the cached token (the provider rejected it)."""
        self._access_token = None

    async def get(self, client: httpx.AsyncClient) -> str:
        """Return a valid token, fetching a new one when needed.

        Raises:
            AuthenticationError: If the provider rejects the credentials
            httpx.HTTPStatusError: On other token endpoint failures
        """
        async with self._lock:
            if self._access_token and time.monotonic() < self._expires_at:
                return self._access_token

            data = {"grant_type": "client_credentials"}
            headers: dict[str, str] = {}
            if self._credentials_in_body:
                data.update(client_id=self._client_id, client_secret=self._client_secret)
            else:
                credentials = f"{self._client_id}:{self._client_secret}"
                headers["Authorization"] = f"Basic {base64.b64encode(credentials.encode()).decode()}"

            response = await client.post(self.token_url, data=data, headers=headers)
            if response.status_code in (400, 401, 403):
                raise AuthenticationError(
                    self.provider,
                    f"{self.provider} rejected client credentials: HTTP {response.status_code}",
                )
            response.raise_for_status()

            payload = response.json()
            self._access_token = cast(str, payload["access_token"])
            expires_in = int(payload.get("expires_in", 3600))
            self._expires_at = time.monotonic() + expires_in - TOKEN_EXPIRY_MARGIN_SECONDS
            logger.debug("Fetched %s app token (expires in %ds)", self.provider, expires_in)
            return self._access_token
