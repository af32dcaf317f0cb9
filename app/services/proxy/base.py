"""
Generic action dispatcher.

Each downstream API is a subclass declaring a closed ``Action`` enum and one
handler per member. Handlers are either builders (payload -> RemoteOperation)
or composites (async, may issue several calls). The handler table is assembled
when the subclass is created; a subclass that leaves an action unhandled fails
at import time instead of at request time.
"""

import dataclasses
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, ClassVar, Protocol
from urllib.parse import quote

from app.infrastructure.observability.logging import get_logger, log_upstream_call
from app.models.domain.proxy_domain import CallResult, RemoteOperation
from app.services.errors import InvalidRequestError, TransportError, UpstreamRequestError
from app.services.remote_caller import RemoteCaller

logger = get_logger(__name__)

ERROR_BODY_PREVIEW_CHARS = 200


class Authenticator(Protocol):
    async def headers(self) -> dict[str, str]: ...


def encode_segment(value: Any) -> str:
    """Percent-encode one path segment; '/' inside the value is encoded too."""
    return quote(str(value), safe="")


def encode_path(path: str) -> str:
    """
    Percent-encode a slash-separated path segment by segment.

    "Client Docs/Packing List.pdf" -> "Client%20Docs/Packing%20List.pdf"
    """
    segments = [segment for segment in str(path).strip("/").split("/") if segment]
    return "/".join(encode_segment(segment) for segment in segments)


def require_fields(payload: dict[str, Any], *fields: str) -> None:
    missing = [name for name in fields if payload.get(name) in (None, "")]
    if missing:
        raise InvalidRequestError(f"Missing payload field(s): {', '.join(missing)}")


def extract_error_message(result: CallResult) -> str:
    """
    Pull a readable message out of a provider's error envelope.

    Understands Graph ({"error": {"message", "code"}}), OAuth ({"error",
    "error_description"}), Twilio ({"message"}) and ServiceStack
    ({"ResponseStatus": {"Message"}}) shapes; otherwise returns the start of the body.
    """
    data = result.json()
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and (error.get("message") or error.get("code")):
            return str(error.get("message") or error.get("code"))
        if isinstance(error, str) and error:
            return str(data.get("error_description") or error)
        for key in ("message", "error_message"):
            if data.get(key):
                return str(data[key])
        status = data.get("ResponseStatus")
        if isinstance(status, dict) and (status.get("Message") or status.get("ErrorCode")):
            return str(status.get("Message") or status.get("ErrorCode"))

    preview = result.text[:ERROR_BODY_PREVIEW_CHARS]
    return preview or f"HTTP {result.status_code}"


@dataclass(frozen=True)
class ActionHandler:
    action: StrEnum
    func: Callable
    composite: bool = False


def operation(action: StrEnum):
    """Mark a method as the RemoteOperation builder for ``action``."""

    def decorator(func):
        func.__dispatch_action__ = (action, False)
        return func

    return decorator


def composite(action: StrEnum):
    """Mark an async method as the multi-step handler for ``action``."""

    def decorator(func):
        func.__dispatch_action__ = (action, True)
        return func

    return decorator


class ActionDispatcher:
    """
    Maps a symbolic action and payload to one concrete downstream request.

    Subclasses set ``api_name``, ``base_url`` and ``Action`` and decorate one
    handler per action with ``@operation`` or ``@composite``.
    """

    api_name: ClassVar[str]
    base_url: ClassVar[str]
    Action: ClassVar[type[StrEnum]]
    _handlers: ClassVar[dict[StrEnum, ActionHandler]]

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)

        handlers: dict[StrEnum, ActionHandler] = {}
        for attr in vars(cls).values():
            tag = getattr(attr, "__dispatch_action__", None)
            if tag is None:
                continue
            action, is_composite = tag
            if action in handlers:
                raise TypeError(f"{cls.__name__} declares two handlers for {action!s}")
            handlers[action] = ActionHandler(action, attr, is_composite)

        unhandled = [member.value for member in cls.Action if member not in handlers]
        if unhandled:
            raise TypeError(f"{cls.__name__} has no handler for: {', '.join(unhandled)}")

        cls._handlers = handlers

    def __init__(self, auth: Authenticator, caller: RemoteCaller):
        self.auth = auth
        self.caller = caller

    @classmethod
    def actions(cls) -> list[str]:
        return [member.value for member in cls.Action]

    async def dispatch(self, action: str, payload: dict[str, Any] | None = None) -> CallResult:
        """
        Run ``action`` with ``payload`` against the downstream API.

        Returns:
            CallResult: the downstream response, body untouched

        Raises:
            InvalidRequestError: unknown action or unusable payload (no network attempted)
            UpstreamAuthError: token exchange failed
            UpstreamRequestError: downstream answered with status >= 400
            TransportError: network failure or timeout
        """
        try:
            member = self.Action(action)
        except ValueError:
            logger.warning("Unknown action rejected", api=self.api_name, action=action)
            raise InvalidRequestError(
                f"Unknown action: {action}", details={"available": self.actions()}
            ) from None

        if payload is None:
            payload = {}
        if not isinstance(payload, dict):
            raise InvalidRequestError("Payload must be a JSON object")

        handler = self._handlers[member]
        if handler.composite:
            return await handler.func(self, payload)

        remote_operation = handler.func(self, payload)
        return await self.execute(remote_operation, action=member.value)

    async def execute(
        self,
        remote_operation: RemoteOperation,
        action: str | None = None,
        raise_for_status: bool = True,
    ) -> CallResult:
        """Attach credentials, send one request and normalize the outcome."""
        if action and not remote_operation.action:
            remote_operation = dataclasses.replace(remote_operation, action=action)

        headers = {"Accept": "application/json"}
        headers.update(await self.auth.headers())
        body, content_type = remote_operation.encode_body()
        if content_type:
            headers["Content-Type"] = content_type

        start = time.perf_counter()
        try:
            result = await self.caller.do(
                self.base_url,
                remote_operation.method,
                remote_operation.path,
                headers=headers,
                body=body,
                timeout=remote_operation.timeout,
            )
        except TransportError as e:
            log_upstream_call(
                self.api_name,
                remote_operation.action,
                None,
                round((time.perf_counter() - start) * 1000, 2),
                error=str(e),
            )
            raise

        log_upstream_call(
            self.api_name,
            remote_operation.action,
            result.status_code,
            round((time.perf_counter() - start) * 1000, 2),
        )

        if raise_for_status and result.status_code >= 400:
            message = extract_error_message(result)
            raise UpstreamRequestError(
                message,
                status_code=result.status_code,
                details={"api": self.api_name, "action": remote_operation.action},
            )

        return result
