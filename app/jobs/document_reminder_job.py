"""
Daily document reminder job.
Runs the reminder engine once a day at REMINDER_RUN_HOUR_UTC.
"""

import asyncio
from datetime import UTC, date, datetime, timedelta

from app.config import settings
from app.dependencies import (
    get_graph_token_cache,
    get_mailbox_dispatcher,
    get_table_storage_client,
)
from app.infrastructure.observability.logging import get_logger
from app.services.errors import ConfigurationError
from app.services.reminders.engine import ReminderEngine, ReminderRunError
from app.services.reminders.notifier import MailReminderSender

logger = get_logger(__name__)

ERROR_RETRY_SECONDS = 300  # wait after an unexpected scheduler error


def build_reminder_engine() -> ReminderEngine:
    """
    Wire the engine from settings.

    Raises:
        ConfigurationError: credentials, mailbox or storage settings are missing
    """
    return ReminderEngine(
        token_cache=get_graph_token_cache(),
        storage=get_table_storage_client(),
        sender=MailReminderSender(get_mailbox_dispatcher()),
        jobs_table=settings.JOBS_TABLE,
        contacts_table=settings.CONTACTS_TABLE,
    )


def next_run_at(now: datetime, run_hour_utc: int, last_run_date: date | None = None) -> datetime:
    """
    Next ``run_hour_utc``:00 UTC after ``now``.

    A day that already had a run (``last_run_date``) is skipped, so a sleep that
    wakes slightly before the hour cannot start a second run on the same day.
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    now = now.astimezone(UTC)
    next_run = now.replace(hour=run_hour_utc, minute=0, second=0, microsecond=0)
    if next_run <= now or next_run.date() == last_run_date:
        next_run += timedelta(days=1)
    return next_run


def seconds_until_next_run(
    now: datetime, run_hour_utc: int, last_run_date: date | None = None
) -> float:
    """Seconds from ``now`` until the next scheduled run."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    return (next_run_at(now, run_hour_utc, last_run_date) - now).total_seconds()


def _utcnow() -> datetime:
    return datetime.now(UTC)


async def run_document_reminders_once() -> dict:
    """Run a single reminder pass and return its metrics."""
    engine = build_reminder_engine()
    await engine.run()
    return engine.metrics.to_dict()


async def start_document_reminder_scheduler():
    """
    Run the reminder engine every day at REMINDER_RUN_HOUR_UTC.

    A failed run is logged and retried at the next scheduled time; there is
    no same-day retry because reminders are not de-duplicated.
    """
    logger.info("Starting document reminder scheduler", run_hour_utc=settings.REMINDER_RUN_HOUR_UTC)

    last_run_date: date | None = None

    while True:
        try:
            now = _utcnow()
            next_run = next_run_at(now, settings.REMINDER_RUN_HOUR_UTC, last_run_date)
            delay = (next_run - now).total_seconds()
            logger.info(
                "Next document reminder run scheduled",
                next_run=next_run.isoformat(),
                seconds_from_now=round(delay),
            )
            await asyncio.sleep(delay)

            # Claimed before running so a failed run is not repeated today
            last_run_date = next_run.date()
            metrics = await run_document_reminders_once()
            logger.info("Document reminder cycle completed", **metrics)

        except ConfigurationError as e:
            logger.error("Document reminder job misconfigured", error=e.message)
        except ReminderRunError as e:
            logger.error(
                "Document reminder run aborted", error=str(e), operation=e.operation
            )
        except asyncio.CancelledError:
            logger.info("Document reminder scheduler stopped")
            raise
        except Exception as e:
            logger.error(
                "Error in document reminder scheduler", error=str(e), error_type=type(e).__name__
            )
            await asyncio.sleep(ERROR_RETRY_SECONDS)
