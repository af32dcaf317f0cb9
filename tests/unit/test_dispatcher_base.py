from enum import StrEnum

import pytest

from app.models.domain.proxy_domain import CallResult, RemoteOperation
from app.services.errors import InvalidRequestError, UpstreamRequestError
from app.services.proxy.base import (
    ActionDispatcher,
    encode_path,
    extract_error_message,
    operation,
)


class PingAction(StrEnum):
    PING = "ping"
    ECHO = "echo"


class PingDispatcher(ActionDispatcher):
    api_name = "ping"
    base_url = "https://ping.example.com"
    Action = PingAction

    @operation(PingAction.PING)
    def ping(self, payload):
        return RemoteOperation("GET", "/ping")

    @operation(PingAction.ECHO)
    def echo(self, payload):
        return RemoteOperation("POST", "/echo", json_body=payload)


def test_incomplete_dispatcher_fails_at_class_creation():
    with pytest.raises(TypeError, match="no handler for: echo"):

        class HalfDispatcher(ActionDispatcher):
            api_name = "half"
            base_url = "https://half.example.com"
            Action = PingAction

            @operation(PingAction.PING)
            def ping(self, payload):
                return RemoteOperation("GET", "/ping")


def test_duplicate_handler_fails_at_class_creation():
    with pytest.raises(TypeError, match="two handlers"):

        class DoubleDispatcher(ActionDispatcher):
            api_name = "double"
            base_url = "https://double.example.com"
            Action = PingAction

            @operation(PingAction.PING)
            def ping(self, payload):
                return RemoteOperation("GET", "/ping")

            @operation(PingAction.PING)
            def ping_again(self, payload):
                return RemoteOperation("GET", "/ping")

            @operation(PingAction.ECHO)
            def echo(self, payload):
                return RemoteOperation("GET", "/echo")


@pytest.mark.asyncio
async def test_unknown_action_never_reaches_network(fake_caller, static_auth):
    dispatcher = PingDispatcher(static_auth, fake_caller)

    with pytest.raises(InvalidRequestError, match="Unknown action: pong") as exc:
        await dispatcher.dispatch("pong", {})

    assert exc.value.details == {"available": ["ping", "echo"]}
    assert fake_caller.calls == []


@pytest.mark.asyncio
async def test_non_object_payload_rejected(fake_caller, static_auth):
    dispatcher = PingDispatcher(static_auth, fake_caller)

    with pytest.raises(InvalidRequestError):
        await dispatcher.dispatch("echo", ["not", "an", "object"])

    assert fake_caller.calls == []


@pytest.mark.asyncio
async def test_dispatch_attaches_auth_and_json_body(fake_caller, static_auth):
    fake_caller.queue(200, '{"echoed": true}')
    dispatcher = PingDispatcher(static_auth, fake_caller)

    result = await dispatcher.dispatch("echo", {"hello": "world"})

    call = fake_caller.calls[0]
    assert call["base_url"] == "https://ping.example.com"
    assert call["method"] == "POST"
    assert call["path"] == "/echo"
    assert call["headers"]["Authorization"] == "Bearer test-token"
    assert call["headers"]["Content-Type"] == "application/json"
    assert call["body"] == b'{"hello": "world"}'
    assert result.json() == {"echoed": True}


@pytest.mark.asyncio
async def test_remote_error_status_is_normalized(fake_caller, static_auth):
    fake_caller.queue(404, '{"error": {"code": "itemNotFound", "message": "Item not found"}}')
    dispatcher = PingDispatcher(static_auth, fake_caller)

    with pytest.raises(UpstreamRequestError) as exc:
        await dispatcher.dispatch("ping")

    assert exc.value.status_code == 404
    assert exc.value.message == "Item not found"
    assert exc.value.to_dict() == {
        "error": "Item not found",
        "kind": "upstream",
        "upstream_status": 404,
    }


@pytest.mark.parametrize(
    "body,expected",
    [
        (b'{"error": {"code": "accessDenied"}}', "accessDenied"),
        (b'{"error": "invalid_grant", "error_description": "Expired"}', "Expired"),
        (b'{"code": 21211, "message": "Invalid To number"}', "Invalid To number"),
        (b'{"ResponseStatus": {"ErrorCode": "NotFound", "Message": "No task"}}', "No task"),
        (b"<html>Bad Gateway</html>", "<html>Bad Gateway</html>"),
        (b"", "HTTP 503"),
    ],
)
def test_extract_error_message(body, expected):
    assert extract_error_message(CallResult(status_code=503, body=body)) == expected


def test_encode_path_encodes_each_segment():
    assert encode_path("/Client Docs/Packing List.pdf") == "Client%20Docs/Packing%20List.pdf"
    assert encode_path("a//b/") == "a/b"
    assert encode_path("") == ""
