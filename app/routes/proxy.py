"""
Proxy API Routes
Thin HTTP endpoints in front of the action dispatchers. Each endpoint validates
the body, hands ``{action, payload}`` to its dispatcher and relays the remote
response. Failures surface as ProxyError and are rendered by the app-level
exception handler.
"""

from fastapi import APIRouter, Depends, Response, status

from app.dependencies import (
    get_document_dispatcher,
    get_mailbox_dispatcher,
    get_messaging_dispatcher,
    get_task_dispatcher,
)
from app.infrastructure.observability.logging import get_logger
from app.models.api.proxy_request import EmailRequest, MessagingRequest, ProxyRequest
from app.models.api.proxy_response import ErrorResponse, MessageQueuedResponse, OkResponse
from app.models.domain.proxy_domain import CallResult
from app.services.proxy.documents import DocumentDispatcher
from app.services.proxy.mailbox import MailboxAction, MailboxDispatcher
from app.services.proxy.messaging import MessagingDispatcher
from app.services.proxy.tasks import TaskDispatcher

logger = get_logger(__name__)

router = APIRouter(
    prefix="/api",
    tags=["proxy"],
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
)

JSON_MEDIA_TYPE = "application/json"


def relay(result: CallResult) -> Response:
    """Pass the remote status and body through unchanged."""
    if result.status_code == status.HTTP_204_NO_CONTENT:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return Response(
        content=result.body or b"{}",
        status_code=result.status_code,
        media_type=JSON_MEDIA_TYPE,
    )


@router.post("/sharepoint")
async def sharepoint_action(
    request: ProxyRequest,
    dispatcher: DocumentDispatcher = Depends(get_document_dispatcher),
):
    """Run a document-library action (folders, uploads, share links, search)."""
    result = await dispatcher.dispatch(request.action, request.payload)
    return relay(result)


@router.post("/graph")
async def graph_action(
    request: ProxyRequest,
    dispatcher: MailboxDispatcher = Depends(get_mailbox_dispatcher),
):
    """Run a mailbox action (calendar events, contacts, mail)."""
    result = await dispatcher.dispatch(request.action, request.payload)
    return relay(result)


@router.post("/email", response_model=OkResponse)
async def send_email(
    request: EmailRequest,
    dispatcher: MailboxDispatcher = Depends(get_mailbox_dispatcher),
):
    """Send one e-mail from the shared mailbox."""
    await dispatcher.dispatch(MailboxAction.SEND_MAIL, request.to_payload())
    logger.info("Email sent", subject=request.subject)
    return OkResponse()


@router.post("/twilio", response_model=MessageQueuedResponse)
async def messaging_action(
    request: MessagingRequest,
    dispatcher: MessagingDispatcher = Depends(get_messaging_dispatcher),
):
    """Send an SMS or WhatsApp message, or place a voice call."""
    result = await dispatcher.dispatch(request.action, request.payload)
    data = result.json()
    if not isinstance(data, dict):
        data = {}
    return MessageQueuedResponse(sid=data.get("sid"), status=data.get("status"))


@router.post("/appenate")
async def task_action(
    request: ProxyRequest,
    dispatcher: TaskDispatcher = Depends(get_task_dispatcher),
):
    """Create, update, read or delete a field-service task."""
    result = await dispatcher.dispatch(request.action, request.payload)
    return relay(result)
