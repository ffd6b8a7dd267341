"""
Console mail transport adapter - Implements MailTransport protocol.

This module provides a console-based implementation of the domain's
mail transport port, logging outbound messages for development use.
"""

import logging

from src.domain.models import OutboundMessage

logger = logging.getLogger(__name__)


class ConsoleMailTransport:
    """
    Implements MailTransport protocol via console logging.

    Uses structural subtyping - no explicit inheritance from Protocol.
    For demo/development purposes - nothing leaves the process.
    """

    def verify(self) -> None:
        """Console output is always available."""
        logger.debug("[MAIL] Console transport ready")

    def send(self, message: OutboundMessage) -> None:
        """
        Log the message instead of delivering it.

        Args:
            message: Message built by the notification dispatcher
        """
        attachment = message.attachment.filename if message.attachment else "-"
        logger.info(
            "[MAIL] To: %s Subject: %s Attachment: %s",
            message.recipient,
            message.subject,
            attachment,
        )
