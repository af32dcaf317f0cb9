"""
Missing-document reminder engine.

Once per day: read every job and every contact, find jobs that start exactly
7 days or 2 days from now and still lack required documents, and send one
reminder per job to its move manager. Nothing is persisted, so running twice
on the same day sends the same reminders twice.
"""

import asyncio
import math
from collections.abc import Iterable
from datetime import UTC, datetime, time
from typing import Protocol

from app.infrastructure.observability.logging import get_logger
from app.models.domain.job_domain import (
    ContactRecord,
    DocumentState,
    JobRecord,
    JobStatus,
    ReminderDecision,
    parse_records,
)
from app.services.errors import PartialRunError, ProxyError
from app.services.token_cache import TokenCache

logger = get_logger(__name__)

# Lead time in days -> label used in the reminder
REMINDER_THRESHOLDS = {7: "7 days", 2: "48 hours"}

# Must match the checklist slugs used by the operations app
REQUIRED_DOCUMENTS = {
    "packing-list": "Packing List / Inventory",
    "insurance": "Insurance Certificate",
    "survey-report": "Survey Report",
    "delivery-order": "Delivery Order / Instructions",
}

INACTIVE_STATUSES = {JobStatus.CANCELLED, JobStatus.COMPLETED, JobStatus.DRAFT}

SECONDS_PER_DAY = 86400


class ReminderRunError(Exception):
    """The run could not start: token or dataset read failed. Nothing was sent."""

    def __init__(self, message: str, operation: str | None = None):
        super().__init__(message)
        self.operation = operation


class EntitySource(Protocol):
    async def list_entities(self, table: str) -> list[dict]: ...


class ReminderSender(Protocol):
    async def send(self, decision: ReminderDecision) -> None: ...


def days_until(start_date, now: datetime) -> int:
    """
    Whole days from ``now`` to noon UTC on ``start_date``, rounded half up.

    Anchoring on noon keeps a once-a-day run landing on the same integer
    whatever hour it fires.
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    start = datetime.combine(start_date, time(12, 0), tzinfo=UTC)
    return math.floor((start - now).total_seconds() / SECONDS_PER_DAY + 0.5)


def missing_documents(checklist: dict) -> list[str]:
    """Required slugs that are absent, empty or explicitly marked missing."""
    return [
        slug
        for slug in REQUIRED_DOCUMENTS
        if not checklist.get(slug) or checklist.get(slug) == DocumentState.MISSING
    ]


def index_contacts(contacts: Iterable[ContactRecord]) -> dict[str, ContactRecord]:
    """Name -> contact; the first record wins when names repeat."""
    index: dict[str, ContactRecord] = {}
    for contact in contacts:
        if contact.name and contact.name not in index:
            index[contact.name] = contact
    return index


def evaluate_job(
    job: JobRecord, contacts: dict[str, ContactRecord], now: datetime
) -> tuple[ReminderDecision | None, str | None]:
    """
    Decide whether ``job`` gets a reminder right now.

    Returns:
        (decision, None) when a reminder is due, otherwise (None, skip_reason)
    """
    if job.status in INACTIVE_STATUSES:
        return None, "inactive_status"
    if not job.move_manager:
        return None, "no_contact_name"
    if job.start_date is None:
        return None, "no_start_date"

    days = days_until(job.start_date, now)
    label = REMINDER_THRESHOLDS.get(days)
    if label is None:
        return None, "not_at_threshold"

    missing = missing_documents(job.doc_checklist)
    if not missing:
        return None, "documents_complete"

    contact = contacts.get(job.move_manager)
    if contact is None or not contact.email:
        return None, "contact_unresolved"

    decision = ReminderDecision(
        job_id=job.display_reference,
        threshold_label=label,
        days_until=days,
        missing_documents=[REQUIRED_DOCUMENTS.get(slug, slug) for slug in missing],
        recipient=contact.email,
        job=job,
    )
    return decision, None


class ReminderRunMetrics:
    """Counters for one reminder run."""

    def __init__(self):
        self.reset()

    def reset(self):
        self.start_time = datetime.now(UTC)
        self.jobs_seen = 0
        self.sent = 0
        self.skipped: dict[str, int] = {}
        self.failures: list[PartialRunError] = []
        self.total_duration_seconds = 0.0

    def record_skip(self, reason: str):
        self.skipped[reason] = self.skipped.get(reason, 0) + 1

    def record_sent(self, decision: ReminderDecision):
        self.sent += 1
        logger.info(
            "Reminder sent",
            job_id=decision.job_id,
            recipient=decision.recipient,
            threshold=decision.threshold_label,
            missing_count=len(decision.missing_documents),
        )

    def record_failure(self, error: PartialRunError):
        self.failures.append(error)
        logger.error("Reminder failed", job_id=error.job_id, error=error.message)

    def finalize(self):
        self.total_duration_seconds = (datetime.now(UTC) - self.start_time).total_seconds()

    def to_dict(self) -> dict:
        return {
            "job_run": "document_reminders",
            "start_time": self.start_time.isoformat(),
            "total_duration_seconds": round(self.total_duration_seconds, 2),
            "jobs_seen": self.jobs_seen,
            "reminders_sent": self.sent,
            "reminders_failed": len(self.failures),
            "skipped": dict(self.skipped),
        }


class ReminderEngine:
    """Computes due reminders from the job and contact datasets and sends them."""

    def __init__(
        self,
        token_cache: TokenCache,
        storage: EntitySource,
        sender: ReminderSender,
        jobs_table: str,
        contacts_table: str,
    ):
        self._token_cache = token_cache
        self._storage = storage
        self._sender = sender
        self.jobs_table = jobs_table
        self.contacts_table = contacts_table
        self.metrics = ReminderRunMetrics()

    async def run(self, now: datetime | None = None) -> int:
        """
        Send every reminder due at ``now``.

        Returns:
            int: number of reminders sent

        Raises:
            ReminderRunError: token acquisition or a dataset read failed
        """
        now = now or datetime.now(UTC)
        self.metrics.reset()

        try:
            await self._token_cache.get_token()
        except ProxyError as e:
            logger.error("Reminder run aborted: token unavailable", error=e.message)
            raise ReminderRunError(f"Token acquisition failed: {e.message}", "get_token") from e

        try:
            job_entities, contact_entities = await asyncio.gather(
                self._storage.list_entities(self.jobs_table),
                self._storage.list_entities(self.contacts_table),
            )
        except ProxyError as e:
            logger.error("Reminder run aborted: dataset read failed", error=e.message)
            raise ReminderRunError(f"Dataset read failed: {e.message}", "read_datasets") from e

        jobs = parse_records(job_entities, JobRecord)
        contacts = index_contacts(parse_records(contact_entities, ContactRecord))

        logger.info(
            "Evaluating jobs for document reminders",
            job_count=len(jobs),
            contact_count=len(contacts),
            now=now.isoformat(),
        )

        for job in jobs:
            self.metrics.jobs_seen += 1
            decision, reason = evaluate_job(job, contacts, now)
            if decision is None:
                self.metrics.record_skip(reason)
                if reason == "contact_unresolved":
                    logger.warning(
                        "No email for move manager, reminder skipped",
                        job_id=job.display_reference,
                        move_manager=job.move_manager,
                    )
                continue

            try:
                await self._sender.send(decision)
            except ProxyError as e:
                self.metrics.record_failure(
                    PartialRunError(
                        f"Reminder for job {decision.job_id} failed: {e.message}",
                        job_id=decision.job_id,
                        cause=e,
                    )
                )
                continue
            except Exception as e:
                # Unexpected sender errors are recorded like remote failures
                self.metrics.record_failure(
                    PartialRunError(
                        f"Reminder for job {decision.job_id} failed: "
                        f"Unexpected error: {type(e).__name__}: {e}",
                        job_id=decision.job_id,
                        cause=e,
                    )
                )
                continue

            self.metrics.record_sent(decision)

        self.metrics.finalize()
        logger.info("Document reminder run complete", **self.metrics.to_dict())
        return self.metrics.sent
