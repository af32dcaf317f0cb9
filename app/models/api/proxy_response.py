# app/models/api/proxy_response.py
"""
Proxy API response models.
Used by routes for output formatting.
"""

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Body returned for every handled failure."""

    error: str = Field(..., description="Human-readable error message")
    kind: str = Field(..., description="Error category, e.g. configuration or upstream")
    upstream_status: int | None = Field(None, description="Status returned by the remote API")


class OkResponse(BaseModel):
    """Acknowledgement for writes with no useful remote body."""

    ok: bool = Field(default=True, description="The operation succeeded")


class MessageQueuedResponse(OkResponse):
    """Response after the messaging provider accepted a message or call."""

    sid: str | None = Field(None, description="Provider identifier of the message or call")
    status: str | None = Field(None, description="Provider status, e.g. queued")
