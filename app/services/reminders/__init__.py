"""
Scheduled missing-document reminders.
"""

from app.services.reminders.engine import ReminderEngine, ReminderRunError, evaluate_job
from app.services.reminders.notifier import MailReminderSender

__all__ = ["MailReminderSender", "ReminderEngine", "ReminderRunError", "evaluate_job"]
