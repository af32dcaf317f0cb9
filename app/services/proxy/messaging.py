"""
Twilio messaging: SMS, WhatsApp and outbound voice calls.
"""

from enum import StrEnum
from typing import Any
from xml.sax.saxutils import escape

from app.models.domain.proxy_domain import RemoteOperation
from app.services.proxy.auth import BasicAuth
from app.services.proxy.base import ActionDispatcher, encode_segment, operation, require_fields
from app.services.remote_caller import RemoteCaller

TWILIO_API_BASE_URL = "https://api.twilio.com"
REQUEST_TIMEOUT = 30  # seconds
DEFAULT_CALL_MESSAGE = "Hello from the operations team"
WHATSAPP_PREFIX = "whatsapp:"


class MessagingAction(StrEnum):
    SEND_SMS = "sendSms"
    SEND_WHATSAPP = "sendWhatsApp"
    MAKE_CALL = "makeCall"


class MessagingDispatcher(ActionDispatcher):
    api_name = "twilio"
    base_url = TWILIO_API_BASE_URL
    Action = MessagingAction

    def __init__(
        self,
        auth: BasicAuth,
        caller: RemoteCaller,
        account_sid: str,
        from_number: str,
        whatsapp_number: str | None = None,
    ):
        super().__init__(auth, caller)
        self.account_sid = account_sid
        self.from_number = from_number
        self.whatsapp_number = whatsapp_number or f"{WHATSAPP_PREFIX}{from_number}"

    def _account_path(self, resource: str) -> str:
        return f"/2010-04-01/Accounts/{encode_segment(self.account_sid)}/{resource}"

    @operation(MessagingAction.SEND_SMS)
    def send_sms(self, payload: dict[str, Any]) -> RemoteOperation:
        require_fields(payload, "to")
        form = {
            "To": payload["to"],
            "From": payload.get("from") or self.from_number,
            "Body": payload.get("body") or "",
        }
        if payload.get("mediaUrl"):
            form["MediaUrl"] = payload["mediaUrl"]
        return RemoteOperation(
            "POST", self._account_path("Messages.json"), form=form, timeout=REQUEST_TIMEOUT
        )

    @operation(MessagingAction.SEND_WHATSAPP)
    def send_whatsapp(self, payload: dict[str, Any]) -> RemoteOperation:
        require_fields(payload, "to")
        recipient = str(payload["to"]).removeprefix(WHATSAPP_PREFIX)
        form = {
            "To": f"{WHATSAPP_PREFIX}{recipient}",
            "From": self.whatsapp_number,
            "Body": payload.get("body") or "",
        }
        if payload.get("mediaUrl"):
            form["MediaUrl"] = payload["mediaUrl"]
        return RemoteOperation(
            "POST", self._account_path("Messages.json"), form=form, timeout=REQUEST_TIMEOUT
        )

    @operation(MessagingAction.MAKE_CALL)
    def make_call(self, payload: dict[str, Any]) -> RemoteOperation:
        require_fields(payload, "to")
        twiml = payload.get("twiml") or (
            f"<Response><Say>{escape(payload.get('body') or DEFAULT_CALL_MESSAGE)}</Say></Response>"
        )
        form = {
            "To": payload["to"],
            "From": payload.get("from") or self.from_number,
            "Twiml": twiml,
        }
        return RemoteOperation(
            "POST", self._account_path("Calls.json"), form=form, timeout=REQUEST_TIMEOUT
        )
