"""
SMTP mail transport adapter - Implements MailTransport protocol.

Blocking smtplib client; the notification dispatcher calls it from a worker
thread. Each call opens its own connection, so one instance can be shared.
"""

import logging
import smtplib
import ssl
from email.message import EmailMessage

from src.domain.exceptions import NotificationError
from src.domain.models import OutboundMessage

logger = logging.getLogger(__name__)


class SmtpMailTransport:
    """
    Implements MailTransport protocol via smtplib.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        username: str | None = None,
        password: str | None = None,
        use_ssl: bool = False,
        starttls: bool = True,
        timeout: float = 30.0,
    ) -> None:
        self._host = host
        self._port = port
        self._sender = sender
        self._username = username
        self._password = password
        self._use_ssl = use_ssl
        self._starttls = starttls
        self._timeout = timeout

    def verify(self) -> None:
        """
        Connect, authenticate and NOOP without sending anything.

        Raises:
            NotificationError: If the server is unreachable or rejects login
        """
        try:
            with self._connect() as smtp:
                smtp.noop()
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationError(f"SMTP verification failed: {e}") from e
        logger.debug("SMTP server %s:%d verified", self._host, self._port)

    def send(self, message: OutboundMessage) -> None:
        """
        Deliver one message.

        Raises:
            NotificationError: If the message could not be sent
        """
        try:
            email = self._build(message)
        except ValueError as e:
            # Header values with CR/LF are rejected by EmailMessage
            raise NotificationError(f"Cannot build mail to {message.recipient!r}: {e}") from e

        try:
            with self._connect() as smtp:
                smtp.send_message(email)
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationError(f"Failed to send mail to {message.recipient}: {e}") from e
        logger.info("Mail sent to %s: %s", message.recipient, message.subject)

    def _connect(self) -> smtplib.SMTP:
        context = ssl.create_default_context()
        if self._use_ssl:
            smtp: smtplib.SMTP = smtplib.SMTP_SSL(
                self._host, self._port, timeout=self._timeout, context=context
            )
        else:
            smtp = smtplib.SMTP(self._host, self._port, timeout=self._timeout)
        try:
            if self._starttls and not self._use_ssl:
                smtp.starttls(context=context)
            if self._username:
                smtp.login(self._username, self._password or "")
        except BaseException:
            smtp.close()
            raise
        return smtp

    def _build(self, message: OutboundMessage) -> EmailMessage:
        email = EmailMessage()
        email["From"] = self._sender
        email["To"] = message.recipient
        email["Subject"] = message.subject
        email.set_content(message.body)

        if message.attachment is not None:
            maintype, _, subtype = message.attachment.content_type.partition("/")
            email.add_attachment(
                message.attachment.content.encode("utf-8"),
                maintype=maintype,
                subtype=subtype or "octet-stream",
                filename=message.attachment.filename,
            )
        return email
