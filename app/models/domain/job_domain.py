# models/domain/job_domain.py
"""
Job and contact records as stored by the operations app, plus the reminder decision
computed from them. Records arrive as table entities whose ``data`` field holds JSON.
"""

import json
from dataclasses import dataclass
from datetime import date
from enum import StrEnum
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class JobStatus(StrEnum):
    DRAFT = "Draft"
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    ACTIVE = "Active"
    IN_PROGRESS = "In Progress"
    CANCELLED = "Cancelled"
    COMPLETED = "Completed"


class DocumentState(StrEnum):
    PRESENT = "present"
    MISSING = "missing"


class JobRecord(BaseModel):
    """Client job as seen by the reminder engine. Unknown fields are ignored."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str | None = None
    start_date: date | None = Field(default=None, alias="startDate")
    # Free text: the operations app may use statuses this service does not know about
    status: str | None = None
    move_manager: str | None = Field(default=None, alias="moveManager")
    doc_checklist: dict[str, Any] = Field(default_factory=dict, alias="docChecklist")

    client_name: str | None = Field(default=None, alias="clientName")
    partner_ref: str | None = Field(default=None, alias="partnerRef")
    client_ref: str | None = Field(default=None, alias="clientRef")
    master_job_id: str | None = Field(default=None, alias="masterJobId")
    sp_folder_url: str | None = Field(default=None, alias="spFolderUrl")

    @field_validator("id", "master_job_id", mode="before")
    @classmethod
    def _stringify_identifier(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        return value

    @field_validator("start_date", mode="before")
    @classmethod
    def _blank_date_is_none(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            if not value:
                return None
            # Accept full ISO timestamps as well as plain dates
            return value[:10]
        return value

    @field_validator("doc_checklist", mode="before")
    @classmethod
    def _checklist_default(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else {}

    @property
    def display_reference(self) -> str:
        return self.master_job_id or self.id or "-"

    @property
    def partner_reference(self) -> str:
        return self.partner_ref or self.client_ref or "-"


class ContactRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str | None = None
    email: str | None = None


@dataclass(frozen=True)
class ReminderDecision:
    """One reminder to send, computed fresh on every run and never persisted."""

    job_id: str
    threshold_label: str
    days_until: int
    missing_documents: list[str]
    recipient: str
    job: JobRecord


RecordT = TypeVar("RecordT", bound=BaseModel)


def parse_records(entities: list[dict[str, Any]], model: type[RecordT]) -> list[RecordT]:
    """
    Parse table entities whose ``data`` field holds a JSON document.

    Entities that do not decode or validate are skipped and logged.
    """
    records: list[RecordT] = []
    for entity in entities:
        raw = entity.get("data") or "{}"
        try:
            records.append(model.model_validate(json.loads(raw)))
        except (ValueError, TypeError, ValidationError) as e:
            logger.warning(
                "Skipping unreadable record",
                model=model.__name__,
                row_key=entity.get("RowKey"),
                error=str(e)[:200],
            )
    return records
