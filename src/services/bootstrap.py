"""
Runtime wiring - Builds ledger, mail transport and dispatcher from settings.

Shared by the FastAPI lifespan and the notification resend tool so both
talk to the same store and the same mail server.
"""

from dataclasses import dataclass
from typing import Protocol

from psycopg_pool import AsyncConnectionPool

from src.adapters.repository.json_file import JsonFileSubmissionLedger
from src.adapters.repository.postgres import PostgresSubmissionLedger
from src.adapters.smtp.console import ConsoleMailTransport
from src.adapters.smtp.smtp import SmtpMailTransport
from src.config.settings import Settings
from src.domain.notification import NotificationDispatcher
from src.domain.ports import MailTransport, SubmissionLedger


class ManagedLedger(SubmissionLedger, Protocol):
    """A ledger with lifecycle hooks run at startup and shutdown."""

    async def start(self) -> None: ...

    async def close(self) -> None: ...


@dataclass
class RuntimeContainer:
    ledger: ManagedLedger
    transport: MailTransport
    dispatcher: NotificationDispatcher


def build_ledger(settings: Settings) -> ManagedLedger:
    if settings.ledger_backend == "postgres":
        pool = AsyncConnectionPool(
            conninfo=settings.database_url,
            min_size=settings.pool_min_size,
            max_size=settings.pool_max_size,
            open=False,
        )
        return PostgresSubmissionLedger(pool)

    return JsonFileSubmissionLedger(
        settings.submissions_file,
        queue_size=settings.writer_queue_size,
        timeout_seconds=settings.ledger_timeout_seconds,
    )


def build_mail_transport(settings: Settings) -> MailTransport:
    if settings.mail_transport == "smtp":
        return SmtpMailTransport(
            host=settings.smtp_host,
            port=settings.smtp_port,
            sender=settings.mail_from,
            username=settings.smtp_username,
            password=settings.smtp_password,
            use_ssl=settings.smtp_use_ssl,
            starttls=settings.smtp_starttls,
            timeout=settings.smtp_timeout_seconds,
        )
    return ConsoleMailTransport()


def build_runtime_container(settings: Settings) -> RuntimeContainer:
    ledger = build_ledger(settings)
    transport = build_mail_transport(settings)
    dispatcher = NotificationDispatcher(
        ledger=ledger,
        transport=transport,
        admin_email=settings.admin_email,
        contact_email_field=settings.contact_email_field,
        contact_name_field=settings.contact_name_field,
    )
    return RuntimeContainer(ledger=ledger, transport=transport, dispatcher=dispatcher)
