"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the interfaces (ports) that the domain requires
from infrastructure. Adapters implement these protocols.
"""

from enum import Enum
from typing import Any, Protocol

from .models import OutboundMessage, SubmissionRecord


class Stage(str, Enum):
    """
    The three sequential registration forms.

    Values double as the stage_data keys of a SubmissionRecord and as the
    route suffix (POST /submit-stage1, ...).
    """

    STAGE1 = "stage1"
    STAGE2 = "stage2"
    STAGE3 = "stage3"


class SubmissionLedger(Protocol):
    """Port interface for submission persistence."""

    async def upsert(self, identity: str, stage_name: str, payload: Any) -> SubmissionRecord:
        """
        Create or merge one stage into the record for an identity.

        Creates the record (created_at = now) when absent. Otherwise replaces
        only stage_data[stage_name], sets last_updated_at = now and keeps
        every other stage entry.

        Args:
            identity: Submitter identity
            stage_name: Stage key ("stage1", "stage2", "stage3")
            payload: Raw stage payload

        Returns:
            The full record after the merge

        Raises:
            StoreWriteError: If the change could not be persisted
        """
        ...

    async def load_all(self) -> list[SubmissionRecord]:
        """
        Return every record in creation order.

        Degrades to an empty list when the store is unreadable or empty.
        """
        ...

    async def find_by_identity(self, identity: str) -> SubmissionRecord | None:
        """Return the record for an identity, or None."""
        ...


class MailTransport(Protocol):
    """Port interface for mail delivery."""

    def verify(self) -> None:
        """
        Check that the transport is reachable and accepts our credentials.

        Raises:
            NotificationError: If verification fails
        """
        ...

    def send(self, message: OutboundMessage) -> None:
        """
        Deliver one message.

        Raises:
            NotificationError: If the message could not be sent
        """
        ...
