"""
Shared-mailbox operations over Microsoft Graph: calendar events, contacts and mail.
All calls act on the configured sending mailbox (MAIL_FROM).
"""

from enum import StrEnum
from typing import Any
from urllib.parse import quote, urlencode

from app.infrastructure.observability.logging import get_logger
from app.models.domain.proxy_domain import CallResult, RemoteOperation
from app.services.errors import InvalidRequestError
from app.services.proxy.auth import BearerTokenAuth
from app.services.proxy.base import (
    ActionDispatcher,
    composite,
    encode_segment,
    operation,
    require_fields,
)
from app.services.remote_caller import RemoteCaller

logger = get_logger(__name__)

GRAPH_API_BASE_URL = "https://graph.microsoft.com"
REQUEST_TIMEOUT = 30  # seconds


class MailboxAction(StrEnum):
    CREATE_CALENDAR_EVENT = "createCalendarEvent"
    UPDATE_CALENDAR_EVENT = "updateCalendarEvent"
    DELETE_CALENDAR_EVENT = "deleteCalendarEvent"
    UPSERT_CONTACT = "upsertContact"
    SEND_MAIL = "sendMail"


def _recipients(value: Any) -> list[dict[str, Any]]:
    addresses = value if isinstance(value, list) else [value]
    return [{"emailAddress": {"address": address}} for address in addresses if address]


class MailboxDispatcher(ActionDispatcher):
    """Mailbox actions for one sending address, authenticated by bearer token."""

    api_name = "graph"
    base_url = GRAPH_API_BASE_URL
    Action = MailboxAction

    def __init__(self, auth: BearerTokenAuth, caller: RemoteCaller, mail_from: str):
        super().__init__(auth, caller)
        self.mail_from = mail_from

    @property
    def mailbox_path(self) -> str:
        return f"/v1.0/users/{encode_segment(self.mail_from)}"

    @operation(MailboxAction.CREATE_CALENDAR_EVENT)
    def create_calendar_event(self, payload: dict[str, Any]) -> RemoteOperation:
        # The mailbox is the organiser; attendees come from the event body
        require_fields(payload, "subject")
        return RemoteOperation(
            "POST", f"{self.mailbox_path}/events", json_body=payload, timeout=REQUEST_TIMEOUT
        )

    @operation(MailboxAction.UPDATE_CALENDAR_EVENT)
    def update_calendar_event(self, payload: dict[str, Any]) -> RemoteOperation:
        require_fields(payload, "eventId", "updates")
        return RemoteOperation(
            "PATCH",
            f"{self.mailbox_path}/events/{encode_segment(payload['eventId'])}",
            json_body=payload["updates"],
            timeout=REQUEST_TIMEOUT,
        )

    @operation(MailboxAction.DELETE_CALENDAR_EVENT)
    def delete_calendar_event(self, payload: dict[str, Any]) -> RemoteOperation:
        require_fields(payload, "eventId")
        return RemoteOperation(
            "DELETE",
            f"{self.mailbox_path}/events/{encode_segment(payload['eventId'])}",
            timeout=REQUEST_TIMEOUT,
        )

    @composite(MailboxAction.UPSERT_CONTACT)
    async def upsert_contact(self, payload: dict[str, Any]) -> CallResult:
        """
        Update the contact whose address matches ``email`` exactly, or create one.

        Not atomic: two identical concurrent requests can both miss the lookup
        and create duplicate contacts.
        """
        require_fields(payload, "email")
        email = str(payload["email"])

        contact = {
            "displayName": payload.get("displayName") or "",
            "emailAddresses": [{"address": email, "name": payload.get("displayName") or ""}],
            "businessPhones": [payload["phone"]] if payload.get("phone") else [],
            "companyName": payload.get("company") or "",
            "personalNotes": payload.get("notes") or "",
        }

        literal = email.replace("'", "''")
        query = urlencode(
            {"$filter": f"emailAddresses/any(e:e/address eq '{literal}')", "$top": "1"},
            quote_via=quote,
        )
        search = await self.execute(
            RemoteOperation("GET", f"{self.mailbox_path}/contacts?{query}", timeout=REQUEST_TIMEOUT),
            action=MailboxAction.UPSERT_CONTACT.value,
        )

        data = search.json()
        matches = data.get("value") if isinstance(data, dict) else None
        existing = matches[0] if matches else None

        if existing and existing.get("id"):
            logger.info("Updating existing contact", contact_id=existing["id"])
            update = RemoteOperation(
                "PATCH",
                f"{self.mailbox_path}/contacts/{encode_segment(existing['id'])}",
                json_body=contact,
                timeout=REQUEST_TIMEOUT,
            )
            return await self.execute(update, action=MailboxAction.UPSERT_CONTACT.value)

        logger.info("Creating new contact")
        create = RemoteOperation(
            "POST", f"{self.mailbox_path}/contacts", json_body=contact, timeout=REQUEST_TIMEOUT
        )
        return await self.execute(create, action=MailboxAction.UPSERT_CONTACT.value)

    @operation(MailboxAction.SEND_MAIL)
    def send_mail(self, payload: dict[str, Any]) -> RemoteOperation:
        require_fields(payload, "to", "subject")
        html, text = payload.get("html"), payload.get("text")
        if not html and not text:
            raise InvalidRequestError("Missing required fields: to, subject, html or text")

        to_recipients = _recipients(payload["to"])
        if not to_recipients:
            raise InvalidRequestError("At least one recipient is required")

        message: dict[str, Any] = {
            "subject": payload["subject"],
            "body": {"contentType": "HTML" if html else "Text", "content": html or text},
            "toRecipients": to_recipients,
            "from": {"emailAddress": {"address": self.mail_from}},
        }
        if payload.get("cc"):
            message["ccRecipients"] = _recipients(payload["cc"])
        if payload.get("replyTo"):
            message["replyTo"] = _recipients(payload["replyTo"])

        return RemoteOperation(
            "POST",
            f"{self.mailbox_path}/sendMail",
            json_body={"message": message, "saveToSentItems": True},
            timeout=REQUEST_TIMEOUT,
        )
