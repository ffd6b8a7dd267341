"""
Notification dispatcher - Completion mail for finished registrations.

Runs after stage 3 has been recorded, detached from the request that
triggered it. Sends one message to the administrative mailbox (with the full
record attached as JSON) and one confirmation to the submitter.

Delivery is best-effort and at-most-once per trigger: no retries, and an
administrator message that went out is not rolled back when the submitter
message fails. Failures are logged and reported through the boolean result;
they never propagate past notify().
"""

import asyncio
import logging
from dataclasses import dataclass

from .exceptions import NotificationError
from .models import Attachment, OutboundMessage, OutboundNotification, SubmissionRecord
from .ports import MailTransport, Stage, SubmissionLedger

logger = logging.getLogger(__name__)

SUBMITTER_SUBJECT = "We received your registration"
SUBMITTER_BODY = (
    "Hello,\n\n"
    "Thank you for registering. We have received all of your information "
    "and our team will review it shortly. We will get back to you by email.\n\n"
    "Kind regards,\n"
    "The exhibitions team\n"
)


@dataclass
class NotificationDispatcher:
    """Builds and sends the completion notification for a record."""

    ledger: SubmissionLedger
    transport: MailTransport
    admin_email: str | None
    contact_email_field: str = "email"
    contact_name_field: str = "name"

    async def notify(self, identity: str) -> bool:
        """
        Send administrator and submitter messages for a completed record.

        Args:
            identity: Identity of the record that just completed stage 3

        Returns:
            True only if verification and both sends succeeded
        """
        record = await self.ledger.find_by_identity(identity)
        if record is None:
            logger.error("Notification skipped: no record for identity %s", identity)
            return False

        contact_email = self.contact_email(record)
        if contact_email is None:
            logger.error("Notification skipped: record %s has no contact email", identity)
            return False

        if not self.admin_email:
            logger.error("Notification skipped: admin email is not configured")
            return False

        notification = self.build(record, contact_email)

        try:
            await asyncio.to_thread(self.transport.verify)
        except NotificationError as exc:
            logger.error("Mail transport verification failed for %s: %s", identity, exc)
            return False
        except Exception:
            logger.exception("Unexpected error verifying mail transport for %s", identity)
            return False

        try:
            await asyncio.to_thread(self.transport.send, notification.administrator_message)
            logger.info("Administrator notified for identity %s", identity)
            await asyncio.to_thread(self.transport.send, notification.submitter_message)
            logger.info("Submitter %s notified for identity %s", contact_email, identity)
        except NotificationError as exc:
            logger.error("Notification failed for %s: %s", identity, exc)
            return False
        except Exception:
            logger.exception("Unexpected error sending notification for %s", identity)
            return False

        return True

    def contact_email(self, record: SubmissionRecord) -> str | None:
        stage1 = record.stage(Stage.STAGE1.value) or {}
        value = stage1.get(self.contact_email_field)
        if isinstance(value, str) and value.strip():
            return value.strip()
        return None

    def contact_name(self, record: SubmissionRecord) -> str:
        stage1 = record.stage(Stage.STAGE1.value) or {}
        value = stage1.get(self.contact_name_field)
        if isinstance(value, str) and value.strip():
            return value.strip()
        return record.identity

    def build(self, record: SubmissionRecord, contact_email: str) -> OutboundNotification:
        """Assemble both messages for a record."""
        name = self.contact_name(record)
        received = ", ".join(sorted(record.stage_data)) or "none"
        updated = record.last_updated_at.isoformat() if record.last_updated_at else "-"

        admin_body = (
            f"New registration completed.\n\n"
            f"Identity: {record.identity}\n"
            f"Name: {name}\n"
            f"Email: {contact_email}\n"
            f"Created: {record.created_at.isoformat()}\n"
            f"Last updated: {updated}\n"
            f"Stages received: {received}\n\n"
            f"The full record is attached as JSON.\n"
        )

        administrator_message = OutboundMessage(
            recipient=str(self.admin_email),
            subject=f"Registration data for {name}",
            body=admin_body,
            attachment=Attachment(
                filename=f"submission_{record.identity}.json",
                content=record.to_json(),
            ),
        )
        submitter_message = OutboundMessage(
            recipient=contact_email,
            subject=SUBMITTER_SUBJECT,
            body=SUBMITTER_BODY,
        )
        return OutboundNotification(
            administrator_message=administrator_message,
            submitter_message=submitter_message,
        )
