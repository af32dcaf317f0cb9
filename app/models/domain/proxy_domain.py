# models/domain/proxy_domain.py
"""
Domain values for outbound calls: credentials, cached tokens, remote operations and results.
"""

import json
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlencode

from app.services.errors import ConfigurationError

GRAPH_DEFAULT_SCOPE = "https://graph.microsoft.com/.default"


@dataclass(frozen=True)
class CredentialSet:
    """Client-credentials identity. Hashable so it can key the token cache registry."""

    tenant_id: str
    client_id: str
    client_secret: str = field(repr=False)
    scope: str = GRAPH_DEFAULT_SCOPE

    def __post_init__(self):
        missing = [
            name
            for name in ("tenant_id", "client_id", "client_secret", "scope")
            if not getattr(self, name)
        ]
        if missing:
            raise ConfigurationError(f"Incomplete credential set: {', '.join(missing)}")


@dataclass(frozen=True)
class CachedToken:
    access_token: str = field(repr=False)
    expires_at: float

    def is_usable(self, now: float, safety_margin: float) -> bool:
        """True while ``now`` is before expiry minus the safety margin."""
        return now < self.expires_at - safety_margin


@dataclass(frozen=True)
class CallResult:
    """Raw outcome of one outbound request. Status codes are not interpreted here."""

    status_code: int
    body: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        """Parse the body as JSON; returns None for empty or non-JSON bodies."""
        if not self.body:
            return None
        try:
            return json.loads(self.body)
        except ValueError:
            return None

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 400


@dataclass(frozen=True)
class RemoteOperation:
    """
    One concrete request against a downstream API.

    Exactly one of ``json_body``, ``form`` or ``content`` is used as the body.
    """

    method: str
    path: str
    action: str = ""
    json_body: Any = None
    form: dict[str, Any] | None = None
    content: bytes | None = None
    content_type: str | None = None
    timeout: float = 30.0

    def encode_body(self) -> tuple[bytes | None, str | None]:
        if self.content is not None:
            return self.content, self.content_type or "application/octet-stream"
        if self.form is not None:
            return urlencode(self.form).encode("utf-8"), "application/x-www-form-urlencoded"
        if self.json_body is not None:
            return json.dumps(self.json_body).encode("utf-8"), "application/json"
        return None, None
