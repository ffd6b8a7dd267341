"""
Domain layer - Pure business logic with zero framework imports.

This package contains the submission workflow, the completion notification
logic and the port interfaces the infrastructure adapters implement.
"""

from .exceptions import (
    ClientSequenceError,
    IntakeError,
    NotificationError,
    StoreInitError,
    StoreWriteError,
)
from .models import Attachment, OutboundMessage, OutboundNotification, SubmissionRecord
from .notification import NotificationDispatcher
from .ports import MailTransport, Stage, SubmissionLedger
from .workflow import STAGE_RULES, StageRule, WorkflowController

__all__ = [
    "STAGE_RULES",
    "Attachment",
    "ClientSequenceError",
    "IntakeError",
    "MailTransport",
    "NotificationDispatcher",
    "NotificationError",
    "OutboundMessage",
    "OutboundNotification",
    "Stage",
    "StageRule",
    "StoreInitError",
    "StoreWriteError",
    "SubmissionLedger",
    "SubmissionRecord",
    "WorkflowController",
]
