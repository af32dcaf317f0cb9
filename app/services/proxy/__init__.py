"""
Action dispatchers for the downstream APIs the proxy mediates.
"""

from app.services.proxy.base import ActionDispatcher
from app.services.proxy.documents import DocumentAction, DocumentDispatcher
from app.services.proxy.mailbox import MailboxAction, MailboxDispatcher
from app.services.proxy.messaging import MessagingAction, MessagingDispatcher
from app.services.proxy.tasks import TaskAction, TaskDispatcher

__all__ = [
    "ActionDispatcher",
    "DocumentAction",
    "DocumentDispatcher",
    "MailboxAction",
    "MailboxDispatcher",
    "MessagingAction",
    "MessagingDispatcher",
    "TaskAction",
    "TaskDispatcher",
]
