"""
Unit tests for JsonFileSubmissionLedger.

Tests the document ledger against a temporary directory:
- Create-or-merge upsert semantics
- Creation-order reads
- Recovery from missing, empty and corrupt documents
- Write failures surface as StoreWriteError
- Callers only time out on jobs that have not started
"""

import asyncio
import json
import logging
import time
from pathlib import Path

import pytest

from src.adapters.repository.json_file import JsonFileSubmissionLedger
from src.domain.exceptions import StoreWriteError


class TestUpsert:
    """Tests for upsert."""

    async def test_creates_record(
        self, ledger: JsonFileSubmissionLedger, stage1_payload: dict
    ) -> None:
        record = await ledger.upsert("id-1", "stage1", stage1_payload)

        assert record.identity == "id-1"
        assert record.stage_data == {"stage1": stage1_payload}
        assert record.last_updated_at is None

    async def test_merge_preserves_other_stages(
        self, ledger: JsonFileSubmissionLedger, stage1_payload: dict, stage2_payload: dict
    ) -> None:
        await ledger.upsert("id-1", "stage1", stage1_payload)
        record = await ledger.upsert("id-1", "stage2", stage2_payload)

        assert record.stage_data == {"stage1": stage1_payload, "stage2": stage2_payload}
        assert record.last_updated_at is not None
        assert record.last_updated_at >= record.created_at

    async def test_resubmitted_stage_replaces_only_that_stage(
        self, ledger: JsonFileSubmissionLedger, stage1_payload: dict, stage2_payload: dict
    ) -> None:
        await ledger.upsert("id-1", "stage1", stage1_payload)
        await ledger.upsert("id-1", "stage2", stage2_payload)
        record = await ledger.upsert("id-1", "stage2", {"link": "http://new.io"})

        assert record.stage_data["stage1"] == stage1_payload
        assert record.stage_data["stage2"] == {"link": "http://new.io"}

    async def test_same_payload_twice_only_advances_last_updated(
        self, ledger: JsonFileSubmissionLedger, stage1_payload: dict, stage2_payload: dict
    ) -> None:
        await ledger.upsert("id-1", "stage1", stage1_payload)
        first = await ledger.upsert("id-1", "stage2", stage2_payload)
        first_updated = first.last_updated_at
        second = await ledger.upsert("id-1", "stage2", stage2_payload)

        assert second.stage_data == first.stage_data
        assert second.created_at == first.created_at
        assert first_updated is not None and second.last_updated_at is not None
        assert second.last_updated_at > first_updated

    async def test_persists_across_instances(
        self, ledger_path: Path, stage1_payload: dict
    ) -> None:
        """Records survive a restart (new ledger over the same document)."""
        first = JsonFileSubmissionLedger(ledger_path)
        await first.upsert("id-1", "stage1", stage1_payload)
        await first.close()

        second = JsonFileSubmissionLedger(ledger_path)
        try:
            record = await second.find_by_identity("id-1")
        finally:
            await second.close()

        assert record is not None
        assert record.stage_data == {"stage1": stage1_payload}

    async def test_document_is_indented_json_array(
        self, ledger: JsonFileSubmissionLedger, ledger_path: Path, stage1_payload: dict
    ) -> None:
        await ledger.upsert("id-1", "stage1", stage1_payload)

        content = ledger_path.read_text(encoding="utf-8")
        assert content.startswith("[\n  {")
        assert json.loads(content)[0]["identity"] == "id-1"


class TestReads:
    """Tests for load_all and find_by_identity."""

    async def test_load_all_keeps_creation_order(self, ledger: JsonFileSubmissionLedger) -> None:
        for identity in ("c", "a", "b"):
            await ledger.upsert(identity, "stage1", {})
        await ledger.upsert("a", "stage2", {})

        records = await ledger.load_all()

        assert [r.identity for r in records] == ["c", "a", "b"]

    async def test_find_missing_identity_returns_none(
        self, ledger: JsonFileSubmissionLedger
    ) -> None:
        assert await ledger.find_by_identity("nope") is None


class TestStoreRecovery:
    """Tests for missing, empty and corrupt documents."""

    async def test_start_creates_empty_document(
        self, ledger: JsonFileSubmissionLedger, ledger_path: Path
    ) -> None:
        assert ledger_path.read_text(encoding="utf-8") == "[]"

    @pytest.mark.parametrize("content", ["", "   \n", "{not json", '{"identity": "x"}', "[{}]"])
    async def test_unreadable_document_degrades_to_empty(
        self, ledger_path: Path, content: str, caplog: pytest.LogCaptureFixture
    ) -> None:
        ledger_path.parent.mkdir(parents=True)
        ledger_path.write_text(content, encoding="utf-8")
        ledger = JsonFileSubmissionLedger(ledger_path)

        try:
            records = await ledger.load_all()
        finally:
            await ledger.close()

        assert records == []

    async def test_corrupt_document_logs_warning(
        self, ledger_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        ledger_path.parent.mkdir(parents=True)
        ledger_path.write_text("{not json", encoding="utf-8")
        ledger = JsonFileSubmissionLedger(ledger_path)

        with caplog.at_level(logging.WARNING):
            try:
                await ledger.load_all()
            finally:
                await ledger.close()

        assert "corrupt" in caplog.text

    async def test_upsert_over_empty_document_creates_record(
        self, ledger_path: Path, stage1_payload: dict
    ) -> None:
        ledger_path.parent.mkdir(parents=True)
        ledger_path.write_text("", encoding="utf-8")
        ledger = JsonFileSubmissionLedger(ledger_path)

        try:
            await ledger.upsert("id-1", "stage1", stage1_payload)
            records = await ledger.load_all()
        finally:
            await ledger.close()

        assert [r.identity for r in records] == ["id-1"]


class TestWriteFailure:
    """Tests for persistence failures."""

    async def test_unserializable_payload_raises_store_write_error(
        self, ledger: JsonFileSubmissionLedger
    ) -> None:
        with pytest.raises(StoreWriteError):
            await ledger.upsert("id-1", "stage1", {"blob": object()})

    async def test_failed_write_leaves_store_unchanged(
        self, ledger: JsonFileSubmissionLedger, ledger_path: Path, stage1_payload: dict
    ) -> None:
        await ledger.upsert("id-1", "stage1", stage1_payload)
        before = ledger_path.read_bytes()

        with pytest.raises(StoreWriteError):
            await ledger.upsert("id-1", "stage2", {"blob": object()})

        assert ledger_path.read_bytes() == before
        record = await ledger.find_by_identity("id-1")
        assert record is not None
        assert "stage2" not in record.stage_data

    async def test_unwritable_location_raises_store_write_error(self, tmp_path: Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory", encoding="utf-8")
        ledger = JsonFileSubmissionLedger(blocker / "submissions.json")

        try:
            with pytest.raises(StoreWriteError):
                await ledger.upsert("id-1", "stage1", {})
        finally:
            await ledger.close()

    async def test_ledger_keeps_working_after_write_failure(
        self, ledger: JsonFileSubmissionLedger
    ) -> None:
        with pytest.raises(StoreWriteError):
            await ledger.upsert("id-1", "stage1", {"blob": object()})

        record = await ledger.upsert("id-2", "stage1", {"email": "b@y.com"})

        assert record.identity == "id-2"

    async def test_unreadable_existing_document_is_not_overwritten(
        self, ledger_path: Path, stage1_payload: dict
    ) -> None:
        """A read error that is not corruption must not reset the store."""
        ledger_path.mkdir(parents=True)
        ledger = JsonFileSubmissionLedger(ledger_path)

        try:
            with pytest.raises(StoreWriteError):
                await ledger.upsert("id-1", "stage1", stage1_payload)
            records = await ledger.load_all()
        finally:
            await ledger.close()

        assert ledger_path.is_dir()
        assert records == []


def slow_writes(
    ledger: JsonFileSubmissionLedger, monkeypatch: pytest.MonkeyPatch, delay: float = 0.2
) -> list[str]:
    """Delay every document write; returns a list that records each write start."""
    original = ledger._write_records
    started: list[str] = []

    def write(records: list) -> None:
        started.append(records[-1].identity)
        time.sleep(delay)
        original(records)

    monkeypatch.setattr(ledger, "_write_records", write)
    return started


async def wait_for_write(started: list[str]) -> None:
    while not started:
        await asyncio.sleep(0.005)


class TestTimeouts:
    """Tests for the per-call deadline."""

    async def test_running_write_completes_past_deadline(
        self, ledger_path: Path, clock, monkeypatch: pytest.MonkeyPatch, stage1_payload: dict
    ) -> None:
        ledger = JsonFileSubmissionLedger(ledger_path, timeout_seconds=0.05, clock=clock)
        await ledger.start()
        slow_writes(ledger, monkeypatch)

        try:
            record = await ledger.upsert("id-1", "stage1", stage1_payload)
            records = await ledger.load_all()
        finally:
            await ledger.close()

        assert record.identity == "id-1"
        assert [r.identity for r in records] == ["id-1"]

    async def test_queued_job_times_out_and_is_skipped(
        self, ledger_path: Path, clock, monkeypatch: pytest.MonkeyPatch, stage1_payload: dict
    ) -> None:
        ledger = JsonFileSubmissionLedger(ledger_path, timeout_seconds=0.05, clock=clock)
        await ledger.start()
        started = slow_writes(ledger, monkeypatch)

        try:
            first = asyncio.create_task(ledger.upsert("id-1", "stage1", stage1_payload))
            await wait_for_write(started)

            with pytest.raises(StoreWriteError):
                await ledger.upsert("id-2", "stage1", stage1_payload)

            await first
            records = await ledger.load_all()
        finally:
            await ledger.close()

        assert [r.identity for r in records] == ["id-1"]
        assert started == ["id-1"]

    async def test_full_queue_times_out(
        self, ledger_path: Path, clock, monkeypatch: pytest.MonkeyPatch, stage1_payload: dict
    ) -> None:
        ledger = JsonFileSubmissionLedger(
            ledger_path, queue_size=1, timeout_seconds=0.05, clock=clock
        )
        await ledger.start()
        started = slow_writes(ledger, monkeypatch)

        try:
            first = asyncio.create_task(ledger.upsert("id-1", "stage1", stage1_payload))
            await wait_for_write(started)
            queued = asyncio.create_task(ledger.upsert("id-2", "stage1", stage1_payload))
            await asyncio.sleep(0)

            with pytest.raises(StoreWriteError):
                await ledger.upsert("id-3", "stage1", stage1_payload)
            with pytest.raises(StoreWriteError):
                await queued

            await first
            records = await ledger.load_all()
        finally:
            await ledger.close()

        assert [r.identity for r in records] == ["id-1"]

    async def test_read_timeout_returns_no_records(
        self, ledger_path: Path, clock, monkeypatch: pytest.MonkeyPatch, stage1_payload: dict
    ) -> None:
        ledger = JsonFileSubmissionLedger(ledger_path, timeout_seconds=0.05, clock=clock)
        await ledger.start()
        started = slow_writes(ledger, monkeypatch)

        try:
            first = asyncio.create_task(ledger.upsert("id-1", "stage1", stage1_payload))
            await wait_for_write(started)

            assert await ledger.load_all() == []

            await first
        finally:
            await ledger.close()
