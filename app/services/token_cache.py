"""
OAuth2 client-credentials token cache.

One TokenCache per CredentialSet. A cached token is handed out only while it is
more than EXPIRY_SAFETY_MARGIN_SECONDS from expiry; otherwise a fresh exchange
happens first. There is no lock: concurrent callers may each refresh, which
costs an extra exchange but never hands out a stale token.
"""

import time
from collections.abc import Callable
from urllib.parse import quote, urlencode

from app.infrastructure.observability.logging import get_logger
from app.models.domain.proxy_domain import CachedToken, CallResult, CredentialSet
from app.services.errors import UpstreamAuthError
from app.services.remote_caller import RemoteCaller, remote_caller

logger = get_logger(__name__)

TOKEN_ISSUER_URL = "https://login.microsoftonline.com"
TOKEN_REQUEST_TIMEOUT = 15  # seconds
EXPIRY_SAFETY_MARGIN_SECONDS = 60


class TokenCache:
    """Caches the bearer token for a single credential set."""

    def __init__(
        self,
        credentials: CredentialSet,
        caller: RemoteCaller,
        clock: Callable[[], float] = time.time,
        safety_margin: float = EXPIRY_SAFETY_MARGIN_SECONDS,
    ):
        self.credentials = credentials
        self._caller = caller
        self._clock = clock
        self._safety_margin = safety_margin
        self._cached: CachedToken | None = None

    @property
    def cached(self) -> CachedToken | None:
        return self._cached

    async def get_token(self) -> str:
        """
        Return a usable access token, exchanging credentials when needed.

        Raises:
            UpstreamAuthError: the issuer rejected the exchange or answered garbage
            TransportError: the issuer could not be reached in time
        """
        now = self._clock()
        cached = self._cached
        if cached is not None and cached.is_usable(now, self._safety_margin):
            return cached.access_token

        token = await self._exchange(now)
        self._cached = token
        return token.access_token

    def invalidate(self) -> None:
        self._cached = None

    async def _exchange(self, now: float) -> CachedToken:
        form = {
            "grant_type": "client_credentials",
            "scope": self.credentials.scope,
            "client_id": self.credentials.client_id,
            "client_secret": self.credentials.client_secret,
        }
        body = urlencode(form)
        path = f"/{quote(self.credentials.tenant_id, safe='')}/oauth2/v2.0/token"

        logger.info(
            "Exchanging client credentials for access token",
            tenant_id=self.credentials.tenant_id,
            client_id_preview=self.credentials.client_id[:8] + "...",
        )

        result = await self._caller.do(
            TOKEN_ISSUER_URL,
            "POST",
            path,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            body=body.encode("utf-8"),
            timeout=TOKEN_REQUEST_TIMEOUT,
        )
        return self._parse_token_response(result, now)

    def _parse_token_response(self, result: CallResult, now: float) -> CachedToken:
        data = result.json()
        if not isinstance(data, dict):
            data = {}

        if not 200 <= result.status_code < 300:
            message = (
                data.get("error_description")
                or data.get("error")
                or f"Token fetch failed (HTTP {result.status_code})"
            )
            logger.error(
                "Token exchange rejected",
                status_code=result.status_code,
                error_code=data.get("error"),
            )
            raise UpstreamAuthError(message, details={"upstream_status": result.status_code})

        access_token = data.get("access_token")
        if not access_token:
            logger.error("Token response missing access_token", response_text=result.text[:100])
            raise UpstreamAuthError(f"Token failed: {result.text[:100]}")

        try:
            lifetime = int(data.get("expires_in"))
        except (TypeError, ValueError):
            logger.error("Token response has invalid expires_in", expires_in=data.get("expires_in"))
            raise UpstreamAuthError("Token response missing a valid expires_in") from None

        logger.info("Access token issued", expires_in=lifetime)
        return CachedToken(access_token=access_token, expires_at=now + lifetime)


_token_caches: dict[CredentialSet, TokenCache] = {}


def get_token_cache(credentials: CredentialSet, caller: RemoteCaller | None = None) -> TokenCache:
    """Process-wide cache for ``credentials``, created on first use."""
    cache = _token_caches.get(credentials)
    if cache is None:
        cache = _token_caches.setdefault(
            credentials, TokenCache(credentials, caller or remote_caller)
        )
    return cache


def reset_token_caches() -> None:
    """Drop every cached token (used on shutdown and in tests)."""
    _token_caches.clear()
