# app/models/api/proxy_request.py
"""
Proxy API request models.
Used by routes for input validation.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ProxyRequest(BaseModel):
    """Request model for the action-dispatch endpoints."""

    action: str = Field(..., min_length=1, description="Action name, e.g. uploadFile")
    payload: dict[str, Any] = Field(default_factory=dict, description="Action-specific fields")


class MessagingRequest(ProxyRequest):
    """Messaging defaults to a plain SMS when no action is given."""

    action: str = Field(default="sendSms", min_length=1, description="sendSms, sendWhatsApp or makeCall")


class EmailRequest(BaseModel):
    """Request model for sending a single e-mail from the shared mailbox."""

    model_config = ConfigDict(populate_by_name=True)

    to: str | list[str] = Field(..., description="Recipient address or list of addresses")
    cc: str | list[str] | None = Field(None, description="Carbon-copy recipients")
    subject: str = Field(..., min_length=1, description="Message subject")
    html: str | None = Field(None, description="HTML body")
    text: str | None = Field(None, description="Plain-text body, used when html is absent")
    reply_to: str | None = Field(None, alias="replyTo", description="Reply-to address")

    @model_validator(mode="after")
    def body_required(self):
        if not self.html and not self.text:
            raise ValueError("Missing required fields: to, subject, html or text")
        if not self.to:
            raise ValueError("Missing required fields: to, subject, html or text")
        return self

    def to_payload(self) -> dict[str, Any]:
        """Payload for the mailbox sendMail action."""
        payload: dict[str, Any] = {"to": self.to, "subject": self.subject}
        if self.html:
            payload["html"] = self.html
        else:
            payload["text"] = self.text
        if self.cc:
            payload["cc"] = self.cc
        if self.reply_to:
            payload["replyTo"] = self.reply_to
        return payload
