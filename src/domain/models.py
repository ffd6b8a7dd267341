"""
Domain models - Submission records and outbound notification messages.

SubmissionRecord is the persisted aggregate of one submitter's stages.
OutboundMessage/OutboundNotification are ephemeral and only live for the
duration of a send attempt.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class SubmissionRecord:
    """
    One submitter's registration across all stages received so far.

    stage_data maps a stage name ("stage1", "stage2", "stage3") to the raw
    payload submitted for that stage. A record holding only stage1 is valid
    and means the registration is in progress.
    """

    identity: str
    created_at: datetime
    stage_data: dict[str, Any] = field(default_factory=dict)
    last_updated_at: datetime | None = None

    def stage(self, stage_name: str) -> dict[str, Any] | None:
        """Return the payload recorded for a stage, if any."""
        payload = self.stage_data.get(stage_name)
        return payload if isinstance(payload, dict) else None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the persisted JSON shape."""
        return {
            "identity": self.identity,
            "created_at": self.created_at.isoformat(),
            "last_updated_at": (
                self.last_updated_at.isoformat() if self.last_updated_at else None
            ),
            "stage_data": self.stage_data,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SubmissionRecord":
        """
        Build a record from its persisted JSON shape.

        Raises:
            KeyError: If identity or created_at is missing
            ValueError: If a timestamp is not ISO-8601
        """
        last_updated = data.get("last_updated_at")
        return cls(
            identity=data["identity"],
            created_at=datetime.fromisoformat(data["created_at"]),
            stage_data=dict(data.get("stage_data") or {}),
            last_updated_at=datetime.fromisoformat(last_updated) if last_updated else None,
        )


@dataclass(frozen=True)
class Attachment:
    filename: str
    content: str
    content_type: str = "application/json"


@dataclass(frozen=True)
class OutboundMessage:
    """A single mail message handed to the transport."""

    recipient: str
    subject: str
    body: str
    attachment: Attachment | None = None


@dataclass(frozen=True)
class OutboundNotification:
    """Administrator and submitter messages produced for one completed record."""

    administrator_message: OutboundMessage
    submitter_message: OutboundMessage
