"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- A JSON document ledger in a temporary directory
- A deterministic clock for timestamp assertions
- Sample stage payloads
"""

from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from src.adapters.repository.json_file import JsonFileSubmissionLedger


class StepClock:
    """Clock that advances one second on every call."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        now = self.current
        self.current = now + timedelta(seconds=1)
        return now


@pytest.fixture
def ledger_path(tmp_path: Path) -> Path:
    """Location of the ledger document (not created yet)."""
    return tmp_path / "data" / "submissions.json"


@pytest.fixture
def clock() -> StepClock:
    return StepClock()


@pytest.fixture
async def ledger(
    ledger_path: Path, clock: StepClock
) -> AsyncGenerator[JsonFileSubmissionLedger, None]:
    """Started JSON ledger, closed after the test."""
    ledger = JsonFileSubmissionLedger(ledger_path, clock=clock)
    await ledger.start()
    yield ledger
    await ledger.close()


@pytest.fixture
def stage1_payload() -> dict:
    return {"email": "a@x.com", "name": "Ana"}


@pytest.fixture
def stage2_payload() -> dict:
    return {"link": "http://port.io"}


@pytest.fixture
def stage3_payload() -> dict:
    return {"title": "Tides", "medium": "oil on canvas"}
