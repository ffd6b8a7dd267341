"""
API routes - Stage submission endpoints.

This module defines the HTTP endpoints:
- POST /submit-stage1 - First form, mints the submitter identity
- POST /submit-stage2?identity=<id> - Second form
- POST /submit-stage3?identity=<id> - Final form, triggers notification
"""

import logging
from typing import Any
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import RedirectResponse

from src.api.dependencies import get_stage_payload, get_workflow_controller
from src.api.models import ErrorResponse
from src.config.settings import Settings, get_settings
from src.domain.exceptions import ClientSequenceError, StoreWriteError
from src.domain.ports import Stage
from src.domain.workflow import WorkflowController

logger = logging.getLogger(__name__)

router = APIRouter(tags=["submissions"])


def next_location(stage: Stage, identity: str, settings: Settings) -> str:
    """Where the browser goes after a stage has been recorded."""
    if stage is Stage.STAGE1:
        return f"{settings.stage2_url}?{urlencode({'identity': identity})}"
    if stage is Stage.STAGE2:
        return f"{settings.stage3_url}?{urlencode({'identity': identity})}"
    return f"{settings.completion_url}?{urlencode({'success': 'true'})}"


@router.post(
    "/submit-{stage}",
    status_code=status.HTTP_302_FOUND,
    response_class=RedirectResponse,
    responses={
        302: {"description": "Stage recorded, redirect to the next form"},
        400: {"model": ErrorResponse, "description": "Identity missing or unknown"},
        422: {"description": "Unknown stage or malformed body"},
        500: {"model": ErrorResponse, "description": "Submission could not be saved"},
    },
    summary="Submit one registration stage",
    description="Record a stage form. Stage 1 returns a new identity in the redirect; "
    "stages 2 and 3 must pass it back as the identity query parameter.",
)
async def submit_stage(
    stage: Stage,
    identity: str | None = Query(default=None, description="Identity issued at stage 1"),
    payload: dict[str, Any] = Depends(get_stage_payload),
    controller: WorkflowController = Depends(get_workflow_controller),
    settings: Settings = Depends(get_settings),
) -> RedirectResponse:
    """
    Record a stage submission and redirect to the next form.

    - **stage**: stage1, stage2 or stage3
    - **identity**: required for stage2 and stage3
    """
    try:
        identity = await controller.submit(stage, payload, identity)
    except ClientSequenceError as e:
        logger.warning("Rejected %s submission: %s", stage.value, e)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Identity not provided or unknown. Please start from the first form.",
        ) from None
    except StoreWriteError:
        logger.exception("Failed to process %s submission", stage.value)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to save the {stage.value} form. Please try again.",
        ) from None

    return RedirectResponse(
        url=next_location(stage, identity, settings),
        status_code=status.HTTP_302_FOUND,
    )
