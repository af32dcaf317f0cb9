"""
Renders missing-document reminders and sends them from the shared mailbox.
"""

from html import escape

from app.models.domain.job_domain import ReminderDecision
from app.services.proxy.mailbox import MailboxAction, MailboxDispatcher

SIGNATURE = "Operations"

_CELL = "padding:8px 14px;border:1px solid #e8eaed;font-size:13px"
_LABEL_CELL = f"{_CELL};font-weight:600;color:#374151;background:#f8f9fb;width:150px"


def format_job_date(decision: ReminderDecision) -> str:
    start = decision.job.start_date
    if start is None:
        return "-"
    return f"{start:%A} {start.day} {start:%B %Y}"


def render_subject(decision: ReminderDecision) -> str:
    job = decision.job
    return (
        f"Action Required - Missing Documents: {job.partner_reference} / "
        f"{job.display_reference} - {job.client_name or '-'}"
    )


def render_body(decision: ReminderDecision) -> str:
    job = decision.job
    greeting = escape(decision.recipient.split("@")[0])
    rows = [
        ("Client", job.client_name or "-"),
        ("Your Reference", job.partner_reference),
        ("Our Reference", job.display_reference),
        ("Job Date", format_job_date(decision)),
    ]
    table = "".join(
        f'<tr><td style="{_LABEL_CELL}">{label}</td><td style="{_CELL}">{escape(value)}</td></tr>'
        for label, value in rows
    )
    missing = escape(", ".join(decision.missing_documents))

    parts = [
        f"<p>Dear {greeting},</p>",
        "<p>This is an automated reminder that the following job is due in "
        f"<strong>{escape(decision.threshold_label)}</strong> and has outstanding "
        "required documents:</p>",
        f'<table style="width:100%;border-collapse:collapse;margin:16px 0">{table}</table>',
        '<div style="background:#fff3cd;border:1px solid #ffc107;border-radius:8px;'
        'padding:16px;margin:20px 0">'
        '<div style="font-weight:700;color:#856404;margin-bottom:8px">Missing Documents</div>'
        f'<div style="color:#533f03;font-size:13px">{missing}</div></div>',
    ]
    if job.sp_folder_url:
        url = escape(job.sp_folder_url, quote=True)
        parts.append(
            "<p>Please upload the missing documents to the job folder:<br>"
            f'<a href="{url}" style="color:#0073EA">{url}</a></p>'
        )
    parts.append("<p>If these documents have already been sent please disregard this message.</p>")
    parts.append(f"<p>Kind regards,<br><strong>{SIGNATURE}</strong></p>")
    return "".join(parts)


class MailReminderSender:
    """Sends a rendered reminder through the mailbox dispatcher's sendMail action."""

    def __init__(self, mailbox: MailboxDispatcher):
        self._mailbox = mailbox

    async def send(self, decision: ReminderDecision) -> None:
        await self._mailbox.dispatch(
            MailboxAction.SEND_MAIL,
            {
                "to": decision.recipient,
                "subject": render_subject(decision),
                "html": render_body(decision),
            },
        )
