"""
Authentication strategies attached to outbound dispatcher requests.
"""

import base64

from app.services.token_cache import TokenCache


class NoAuth:
    """For APIs whose credentials travel inside the request itself."""

    async def headers(self) -> dict[str, str]:
        return {}


class BearerTokenAuth:
    """OAuth bearer token from a client-credentials token cache."""

    def __init__(self, token_cache: TokenCache):
        self.token_cache = token_cache

    async def headers(self) -> dict[str, str]:
        token = await self.token_cache.get_token()
        return {"Authorization": f"Bearer {token}"}


class BasicAuth:
    def __init__(self, username: str, password: str):
        encoded = base64.b64encode(f"{username}:{password}".encode()).decode("ascii")
        self._header = f"Basic {encoded}"

    async def headers(self) -> dict[str, str]:
        return {"Authorization": self._header}
