import json

import pytest

from app.services.errors import InvalidRequestError, UpstreamRequestError
from app.services.proxy.mailbox import MailboxDispatcher

MAILBOX = "/v1.0/users/ops%40example.com"


@pytest.fixture
def dispatcher(fake_caller, static_auth):
    return MailboxDispatcher(static_auth, fake_caller, mail_from="ops@example.com")


@pytest.mark.asyncio
async def test_upsert_contact_updates_existing_match(dispatcher, fake_caller):
    fake_caller.queue(200, '{"value": [{"id": "contact-7"}]}')
    fake_caller.queue(200, '{"id": "contact-7"}')

    await dispatcher.dispatch(
        "upsertContact",
        {"email": "jane@example.com", "displayName": "Jane Doe", "phone": "+441234"},
    )

    search, update = fake_caller.calls
    assert search["method"] == "GET"
    assert search["path"].startswith(f"{MAILBOX}/contacts?")
    assert "%27jane%40example.com%27" in search["path"]
    assert update["method"] == "PATCH"
    assert update["path"] == f"{MAILBOX}/contacts/contact-7"
    body = json.loads(update["body"])
    assert body["displayName"] == "Jane Doe"
    assert body["businessPhones"] == ["+441234"]
    assert body["emailAddresses"][0]["address"] == "jane@example.com"


@pytest.mark.asyncio
async def test_upsert_contact_creates_when_no_match(dispatcher, fake_caller):
    fake_caller.queue(200, '{"value": []}')
    fake_caller.queue(201, '{"id": "contact-8"}')

    result = await dispatcher.dispatch("upsertContact", {"email": "new@example.com"})

    assert [call["method"] for call in fake_caller.calls] == ["GET", "POST"]
    assert fake_caller.calls[1]["path"] == f"{MAILBOX}/contacts"
    assert result.status_code == 201


@pytest.mark.asyncio
async def test_upsert_contact_stops_when_lookup_fails(dispatcher, fake_caller):
    fake_caller.queue(403, '{"error": {"code": "ErrorAccessDenied", "message": "Access is denied."}}')

    with pytest.raises(UpstreamRequestError) as exc:
        await dispatcher.dispatch("upsertContact", {"email": "jane@example.com"})

    assert exc.value.status_code == 403
    assert len(fake_caller.calls) == 1


@pytest.mark.asyncio
async def test_send_mail_builds_message(dispatcher, fake_caller):
    fake_caller.queue(202, "")

    result = await dispatcher.dispatch(
        "sendMail",
        {
            "to": ["a@example.com", "b@example.com"],
            "cc": "c@example.com",
            "subject": "Survey booked",
            "html": "<p>See you Monday</p>",
            "replyTo": "desk@example.com",
        },
    )

    call = fake_caller.calls[0]
    assert call["path"] == f"{MAILBOX}/sendMail"
    body = json.loads(call["body"])
    message = body["message"]
    assert body["saveToSentItems"] is True
    assert message["body"] == {"contentType": "HTML", "content": "<p>See you Monday</p>"}
    assert [r["emailAddress"]["address"] for r in message["toRecipients"]] == [
        "a@example.com",
        "b@example.com",
    ]
    assert message["ccRecipients"][0]["emailAddress"]["address"] == "c@example.com"
    assert message["replyTo"][0]["emailAddress"]["address"] == "desk@example.com"
    assert message["from"]["emailAddress"]["address"] == "ops@example.com"
    assert result.status_code == 202


@pytest.mark.asyncio
async def test_send_mail_plain_text_body(dispatcher, fake_caller):
    await dispatcher.dispatch("sendMail", {"to": "a@example.com", "subject": "Hi", "text": "Plain"})

    message = json.loads(fake_caller.calls[0]["body"])["message"]
    assert message["body"] == {"contentType": "Text", "content": "Plain"}


@pytest.mark.asyncio
async def test_send_mail_requires_a_body(dispatcher, fake_caller):
    with pytest.raises(InvalidRequestError, match="html or text"):
        await dispatcher.dispatch("sendMail", {"to": "a@example.com", "subject": "Hi"})

    assert fake_caller.calls == []


@pytest.mark.asyncio
async def test_calendar_event_lifecycle_paths(dispatcher, fake_caller):
    await dispatcher.dispatch("createCalendarEvent", {"subject": "Pre-move survey"})
    await dispatcher.dispatch(
        "updateCalendarEvent", {"eventId": "AAMk=", "updates": {"subject": "Moved"}}
    )
    await dispatcher.dispatch("deleteCalendarEvent", {"eventId": "AAMk="})

    create, update, delete = fake_caller.calls
    assert (create["method"], create["path"]) == ("POST", f"{MAILBOX}/events")
    assert (update["method"], update["path"]) == ("PATCH", f"{MAILBOX}/events/AAMk%3D")
    assert json.loads(update["body"]) == {"subject": "Moved"}
    assert (delete["method"], delete["path"]) == ("DELETE", f"{MAILBOX}/events/AAMk%3D")
