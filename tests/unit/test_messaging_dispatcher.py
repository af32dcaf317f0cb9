import base64
from urllib.parse import parse_qs

import pytest

from app.services.errors import UpstreamRequestError
from app.services.proxy.auth import BasicAuth
from app.services.proxy.messaging import MessagingDispatcher

MESSAGES_PATH = "/2010-04-01/Accounts/AC123/Messages.json"


@pytest.fixture
def dispatcher(fake_caller):
    return MessagingDispatcher(
        BasicAuth("AC123", "auth-token"),
        fake_caller,
        account_sid="AC123",
        from_number="+15550001111",
    )


def _form(call) -> dict[str, str]:
    return {key: values[0] for key, values in parse_qs(call["body"].decode()).items()}


@pytest.mark.asyncio
async def test_sms_uses_basic_auth_and_form_body(dispatcher, fake_caller):
    fake_caller.queue(201, '{"sid": "SM1", "status": "queued"}')

    result = await dispatcher.dispatch("sendSms", {"to": "+447700900123", "body": "Crew arriving 8am"})

    call = fake_caller.calls[0]
    expected = base64.b64encode(b"AC123:auth-token").decode()
    assert call["headers"]["Authorization"] == f"Basic {expected}"
    assert call["headers"]["Content-Type"] == "application/x-www-form-urlencoded"
    assert call["path"] == MESSAGES_PATH
    assert _form(call) == {
        "To": "+447700900123",
        "From": "+15550001111",
        "Body": "Crew arriving 8am",
    }
    assert result.json()["sid"] == "SM1"


@pytest.mark.asyncio
async def test_whatsapp_prefixes_both_numbers_once(dispatcher, fake_caller):
    await dispatcher.dispatch("sendWhatsApp", {"to": "whatsapp:+447700900123", "body": "Hi"})

    form = _form(fake_caller.calls[0])
    assert form["To"] == "whatsapp:+447700900123"
    assert form["From"] == "whatsapp:+15550001111"


@pytest.mark.asyncio
async def test_call_escapes_spoken_text(dispatcher, fake_caller):
    await dispatcher.dispatch("makeCall", {"to": "+447700900123", "body": "Crates & boxes <today>"})

    call = fake_caller.calls[0]
    assert call["path"] == "/2010-04-01/Accounts/AC123/Calls.json"
    assert _form(call)["Twiml"] == (
        "<Response><Say>Crates &amp; boxes &lt;today&gt;</Say></Response>"
    )


@pytest.mark.asyncio
async def test_call_default_message(dispatcher, fake_caller):
    await dispatcher.dispatch("makeCall", {"to": "+447700900123"})

    assert "Hello from the operations team" in _form(fake_caller.calls[0])["Twiml"]


@pytest.mark.asyncio
async def test_provider_error_message_is_surfaced(dispatcher, fake_caller):
    fake_caller.queue(400, '{"code": 21211, "message": "The \'To\' number is not valid."}')

    with pytest.raises(UpstreamRequestError) as exc:
        await dispatcher.dispatch("sendSms", {"to": "nope"})

    assert exc.value.status_code == 400
    assert exc.value.message == "The 'To' number is not valid."
