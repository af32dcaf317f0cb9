"""
Error taxonomy shared by the token cache, dispatchers, storage client and reminder engine.

Every error carries a ``kind`` and an HTTP ``status_code`` so route handlers can
render it without knowing which component raised it.
"""

from typing import Any


class ProxyError(Exception):
    """Base exception for all proxy-side failures."""

    kind = "proxy"
    status_code = 500

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message, "kind": self.kind}


class ConfigurationError(ProxyError):
    """Required credentials or settings are missing. Never reaches the network."""

    kind = "configuration"
    status_code = 500


class InvalidRequestError(ProxyError):
    """Caller input is unusable (unknown action, missing payload field)."""

    kind = "validation"
    status_code = 400


class UpstreamAuthError(ProxyError):
    """The token issuer rejected the client-credentials exchange."""

    kind = "upstream_auth"
    status_code = 401


class UpstreamRequestError(ProxyError):
    """A downstream API answered with status >= 400."""

    kind = "upstream"

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["upstream_status"] = self.status_code
        return data


class TransportError(ProxyError):
    """Network failure talking to a remote host."""

    kind = "transport"
    status_code = 502
    timed_out = False


class TransportTimeoutError(TransportError):
    """The remote call exceeded its deadline and was aborted."""

    timed_out = True


class PartialRunError(ProxyError):
    """One job's reminder could not be sent; recorded, the run continues."""

    kind = "partial_run"

    def __init__(self, message: str, job_id: str | None = None, cause: Exception | None = None):
        super().__init__(message, details={"job_id": job_id})
        self.job_id = job_id
        self.cause = cause
