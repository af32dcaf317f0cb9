"""
Builds dispatchers and clients from settings.

Every builder checks its configuration first and raises ConfigurationError
before anything touches the network. Route handlers use these through
``Depends`` so tests can swap them with ``app.dependency_overrides``.
"""

from app.config import settings
from app.services.proxy.auth import BasicAuth, BearerTokenAuth
from app.services.proxy.documents import DocumentDispatcher
from app.services.proxy.mailbox import MailboxDispatcher
from app.services.proxy.messaging import MessagingDispatcher
from app.services.proxy.tasks import TaskDispatcher
from app.services.remote_caller import remote_caller
from app.services.table_storage import TableStorageClient, get_table_storage
from app.services.token_cache import TokenCache, get_token_cache


def get_graph_token_cache() -> TokenCache:
    return get_token_cache(settings.graph_credentials(), remote_caller)


def get_document_dispatcher() -> DocumentDispatcher:
    token_cache = get_graph_token_cache()
    host, path = settings.sharepoint_site()
    return DocumentDispatcher(
        BearerTokenAuth(token_cache),
        remote_caller,
        site_host=host,
        site_path=path,
        site_url=settings.SP_SITE_URL,
    )


def get_mailbox_dispatcher() -> MailboxDispatcher:
    settings.require("SP_TENANT_ID", "SP_CLIENT_ID", "SP_CLIENT_SECRET", "MAIL_FROM")
    return MailboxDispatcher(
        BearerTokenAuth(get_graph_token_cache()), remote_caller, mail_from=settings.MAIL_FROM
    )


def get_messaging_dispatcher() -> MessagingDispatcher:
    settings.require("TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN", "TWILIO_FROM_NUMBER")
    return MessagingDispatcher(
        BasicAuth(settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN),
        remote_caller,
        account_sid=settings.TWILIO_ACCOUNT_SID,
        from_number=settings.TWILIO_FROM_NUMBER,
        whatsapp_number=settings.TWILIO_WHATSAPP_NUMBER,
    )


def get_task_dispatcher() -> TaskDispatcher:
    settings.require("APPENATE_INTEGRATION_KEY", "APPENATE_PROVIDER_ID")
    return TaskDispatcher(
        remote_caller,
        integration_key=settings.APPENATE_INTEGRATION_KEY,
        provider_id=settings.APPENATE_PROVIDER_ID,
    )


def get_table_storage_client() -> TableStorageClient:
    settings.require("STORAGE_ACCOUNT", "STORAGE_KEY")
    return get_table_storage(settings.STORAGE_ACCOUNT, settings.STORAGE_KEY)
