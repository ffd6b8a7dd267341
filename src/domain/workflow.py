"""
Workflow controller - Three-stage submission state machine.

This module turns independent stage form posts into ledger upserts and
decides which identity flows back to the caller.

Stage Table
===========

    Stage    requires identity    triggers notification
    stage1   no                   no
    stage2   yes                  no
    stage3   yes                  yes

Stage 1 always mints a new identity. Stage 2 and 3 must carry an identity
that the ledger already knows; anything else is a ClientSequenceError and
the ledger is left untouched.

Note: Replaying stage 1 creates a second, unrelated record. No
de-duplication key (such as email) is enforced across stage 1 submissions.
"""

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from .exceptions import ClientSequenceError
from .ports import Stage, SubmissionLedger

logger = logging.getLogger(__name__)

NotificationScheduler = Callable[[str], None]


@dataclass(frozen=True)
class StageRule:
    requires_identity: bool
    triggers_notification: bool


STAGE_RULES: dict[Stage, StageRule] = {
    Stage.STAGE1: StageRule(requires_identity=False, triggers_notification=False),
    Stage.STAGE2: StageRule(requires_identity=True, triggers_notification=False),
    Stage.STAGE3: StageRule(requires_identity=True, triggers_notification=True),
}


def new_identity() -> str:
    return str(uuid.uuid4())


def _no_notification(identity: str) -> None:
    pass


@dataclass
class WorkflowController:
    """
    Domain service for stage submissions.

    Stateless between calls; all state lives in the ledger. The
    notification scheduler only queues work (e.g. a background task) and
    must not wait for delivery.
    """

    ledger: SubmissionLedger
    schedule_notification: NotificationScheduler = _no_notification
    identity_factory: Callable[[], str] = new_identity

    async def submit(self, stage: Stage, payload: Any, identity: str | None = None) -> str:
        """
        Record one stage submission.

        Args:
            stage: Which form was submitted
            payload: Raw form payload
            identity: Identity from a previous stage (ignored for stage 1)

        Returns:
            Identity the caller must propagate to the next stage

        Raises:
            ClientSequenceError: Stage 2/3 without a known identity
            StoreWriteError: If the ledger could not persist the submission
        """
        rule = STAGE_RULES[stage]

        if rule.requires_identity:
            identity = await self._resolve_identity(stage, identity)
        else:
            identity = self.identity_factory()

        await self.ledger.upsert(identity, stage.value, payload)
        logger.info("Recorded %s for identity %s", stage.value, identity)

        if rule.triggers_notification:
            self.schedule_notification(identity)

        return identity

    async def _resolve_identity(self, stage: Stage, identity: str | None) -> str:
        if not identity:
            raise ClientSequenceError(f"{stage.value} submitted without identity")

        if await self.ledger.find_by_identity(identity) is None:
            raise ClientSequenceError(f"{stage.value} submitted for unknown identity {identity}")

        return identity
