"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting
domain services and infrastructure adapters into routes.
"""

from typing import Any

from fastapi import BackgroundTasks, HTTPException, Request, status
from starlette.datastructures import UploadFile

from src.domain.notification import NotificationDispatcher
from src.domain.ports import SubmissionLedger
from src.domain.workflow import WorkflowController


def get_ledger(request: Request) -> SubmissionLedger:
    """
    Get ledger from app state.

    The ledger is created and started during app lifespan startup.
    """
    return request.app.state.ledger


def get_dispatcher(request: Request) -> NotificationDispatcher:
    """Get notification dispatcher from app state."""
    return request.app.state.dispatcher


def get_workflow_controller(
    request: Request, background_tasks: BackgroundTasks
) -> WorkflowController:
    """
    Create workflow controller with injected dependencies.

    Stage 3 notifications are queued as background tasks, so they run
    after the response has been sent and never affect it.
    """
    ledger = get_ledger(request)
    dispatcher = get_dispatcher(request)

    def schedule_notification(identity: str) -> None:
        background_tasks.add_task(dispatcher.notify, identity)

    return WorkflowController(ledger=ledger, schedule_notification=schedule_notification)


async def get_stage_payload(request: Request) -> dict[str, Any]:
    """
    Extract the stage payload from a JSON or form-encoded body.

    Field contents are not validated. Repeated form keys become lists and
    uploaded files are recorded by filename.
    """
    content_type = request.headers.get("content-type", "")

    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Request body is not valid JSON",
            ) from None
        if not isinstance(body, dict):
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Request body must be a JSON object",
            )
        return body

    form = await request.form()
    payload: dict[str, Any] = {}
    for key in form.keys():
        values = [
            value.filename if isinstance(value, UploadFile) else value
            for value in form.getlist(key)
        ]
        payload[key] = values[0] if len(values) == 1 else values
    return payload
