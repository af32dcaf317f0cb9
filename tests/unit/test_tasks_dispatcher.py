import json
from urllib.parse import parse_qs, urlsplit

import pytest

from app.services.errors import ConfigurationError, InvalidRequestError, UpstreamRequestError
from app.services.proxy.tasks import TaskDispatcher


@pytest.fixture
def dispatcher(fake_caller):
    return TaskDispatcher(fake_caller, integration_key="key-abc", provider_id="42")


@pytest.mark.asyncio
async def test_create_task_injects_credentials_into_body(dispatcher, fake_caller):
    await dispatcher.dispatch("createTask", {"Title": "Pack kitchen", "ExternalId": "JOB-1"})

    call = fake_caller.calls[0]
    assert call["method"] == "POST"
    assert call["path"] == "/api/v1/stask?format=json"
    assert "Authorization" not in call["headers"]
    assert json.loads(call["body"]) == {
        "Title": "Pack kitchen",
        "ExternalId": "JOB-1",
        "IntegrationKey": "key-abc",
        "ProviderId": 42,
    }


@pytest.mark.asyncio
async def test_update_requires_task_id(dispatcher, fake_caller):
    with pytest.raises(InvalidRequestError, match="Id"):
        await dispatcher.dispatch("updateTask", {"Title": "Pack kitchen"})

    assert fake_caller.calls == []


@pytest.mark.asyncio
async def test_get_task_passes_credentials_in_query(dispatcher, fake_caller):
    await dispatcher.dispatch("getTask", {"Id": "task 9"})

    call = fake_caller.calls[0]
    parts = urlsplit(call["path"])
    assert parts.path == "/api/v1/stask"
    assert parse_qs(parts.query) == {
        "format": ["json"],
        "Id": ["task 9"],
        "ProviderId": ["42"],
        "Integrationkey": ["key-abc"],
    }


@pytest.mark.asyncio
async def test_delete_task_method(dispatcher, fake_caller):
    await dispatcher.dispatch("deleteTask", {"Id": "9"})

    assert fake_caller.calls[0]["method"] == "DELETE"


@pytest.mark.asyncio
async def test_remote_error_is_normalized(dispatcher, fake_caller):
    fake_caller.queue(401, '{"ResponseStatus": {"ErrorCode": "Unauthorized", "Message": "Bad key"}}')

    with pytest.raises(UpstreamRequestError, match="Bad key"):
        await dispatcher.dispatch("getTask", {"Id": "9"})


def test_non_numeric_provider_id_is_configuration_error(fake_caller):
    with pytest.raises(ConfigurationError):
        TaskDispatcher(fake_caller, integration_key="key-abc", provider_id="forty-two")
