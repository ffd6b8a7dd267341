"""
JSON document ledger adapter - Implements SubmissionLedger protocol.

All records live in one shared JSON document, so every upsert is a full
read-merge-write over the whole file.

Concurrency Design - Single Writer:
-----------------------------------
Two upserts interleaved between their read and their write would both work
from the same snapshot, and the second write would silently discard the
first (lost update). To prevent this, every ledger operation (reads
included) is a job on one bounded asyncio.Queue consumed by a single worker
task. Jobs run one at a time in arrival order, so each upsert is atomic with
respect to every other ledger operation in the process.

Disk I/O runs in a thread (asyncio.to_thread) to keep the event loop free
for other requests. The document is written to a temporary file and moved
into place with os.replace, so a crash mid-write never leaves a truncated
document behind.

Read Failures:
--------------
A missing document is created as "[]". An empty or unparseable document is
logged and treated as an empty ledger (StoreInitError is recovered here and
never reaches callers). A document that exists but cannot be read is an empty
ledger for reads, while an upsert over it raises StoreWriteError and leaves
it untouched. Write failures raise StoreWriteError.
"""

import asyncio
import contextlib
import json
import logging
import os
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from src.domain.exceptions import StoreInitError, StoreWriteError
from src.domain.models import SubmissionRecord

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class _Job:
    operation: Callable[[], Awaitable[Any]]
    future: asyncio.Future
    started: asyncio.Event = field(default_factory=asyncio.Event)


class JsonFileSubmissionLedger:
    """
    Implements SubmissionLedger protocol over a single JSON document.

    Uses structural subtyping - no explicit inheritance from Protocol.
    The instance exclusively owns the document; nothing else may read or
    write it.
    """

    def __init__(
        self,
        path: Path,
        queue_size: int = 100,
        timeout_seconds: float = 10.0,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """
        Initialize ledger.

        Args:
            path: Location of the JSON document
            queue_size: Pending jobs allowed before callers wait to enqueue
            timeout_seconds: Maximum time a caller waits for its job
            clock: Source of created_at / last_updated_at timestamps
        """
        self._path = Path(path)
        self._queue_size = queue_size
        self._timeout = timeout_seconds
        self._clock = clock
        self._queue: asyncio.Queue[_Job] | None = None
        self._worker: asyncio.Task[None] | None = None

    @property
    def path(self) -> Path:
        return self._path

    async def start(self) -> None:
        """Start the writer task and make sure the document exists."""
        self._ensure_worker()
        await self._submit(self._initialize)

    async def close(self) -> None:
        """Wait for pending jobs, then stop the writer task."""
        if self._worker is None:
            return
        if self._worker.get_loop() is not asyncio.get_running_loop():
            self._worker = None
            self._queue = None
            return
        if self._queue is not None:
            await self._queue.join()
        self._worker.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._worker
        self._worker = None
        self._queue = None

    async def upsert(self, identity: str, stage_name: str, payload: Any) -> SubmissionRecord:
        async def operation() -> SubmissionRecord:
            return await self._apply_upsert(identity, stage_name, payload)

        try:
            return await self._submit(operation)
        except TimeoutError:
            logger.error("Ledger upsert timed out for identity %s", identity)
            raise StoreWriteError("Timed out waiting for the ledger") from None

    async def load_all(self) -> list[SubmissionRecord]:
        try:
            return await self._submit(self._read_records_async)
        except TimeoutError:
            logger.warning("Ledger read timed out, returning no records")
            return []

    async def find_by_identity(self, identity: str) -> SubmissionRecord | None:
        records = await self.load_all()
        return next((record for record in records if record.identity == identity), None)

    # Queue plumbing

    def _ensure_worker(self) -> asyncio.Queue[_Job]:
        loop = asyncio.get_running_loop()
        queue = self._queue
        if (
            queue is None
            or self._worker is None
            or self._worker.done()
            or self._worker.get_loop() is not loop
        ):
            queue = asyncio.Queue(maxsize=self._queue_size)
            self._queue = queue
            self._worker = loop.create_task(self._run(queue))
        return queue

    async def _submit(self, operation: Callable[[], Awaitable[Any]]) -> Any:
        """
        Enqueue a job and wait for its result.

        The deadline covers enqueueing and waiting for the worker to pick the
        job up. A job that has started always runs to completion and its
        caller gets the real outcome.

        Raises:
            TimeoutError: If the job did not start within the deadline
        """
        queue = self._ensure_worker()
        job = _Job(operation=operation, future=asyncio.get_running_loop().create_future())
        try:
            async with asyncio.timeout(self._timeout):
                await queue.put(job)
                await job.started.wait()
        except TimeoutError:
            if not job.started.is_set():
                # The worker skips cancelled jobs
                job.future.cancel()
                raise
        except asyncio.CancelledError:
            job.future.cancel()
            raise
        return await job.future

    async def _run(self, queue: asyncio.Queue[_Job]) -> None:
        while True:
            job = await queue.get()
            try:
                if job.future.cancelled():
                    continue
                job.started.set()
                try:
                    result = await job.operation()
                except Exception as exc:
                    if not job.future.done():
                        job.future.set_exception(exc)
                else:
                    if not job.future.done():
                        job.future.set_result(result)
            finally:
                queue.task_done()

    # Operations (only ever run by the worker)

    async def _initialize(self) -> None:
        try:
            await asyncio.to_thread(self._ensure_document)
        except StoreInitError as e:
            logger.warning("%s - writes will be attempted on demand", e)

    async def _read_records_async(self) -> list[SubmissionRecord]:
        return await asyncio.to_thread(self._read_records)

    async def _apply_upsert(
        self, identity: str, stage_name: str, payload: Any
    ) -> SubmissionRecord:
        records = await asyncio.to_thread(self._read_records_for_update)
        now = self._clock()

        record = next((r for r in records if r.identity == identity), None)
        if record is not None:
            record.stage_data[stage_name] = payload
            record.last_updated_at = now
        else:
            record = SubmissionRecord(
                identity=identity,
                created_at=now,
                stage_data={stage_name: payload},
            )
            records.append(record)

        await asyncio.to_thread(self._write_records, records)
        logger.info("Saved %s for identity %s", stage_name, identity)
        return record

    # Blocking file access (runs in a thread)

    def _ensure_document(self) -> None:
        if self._path.exists():
            return
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text("[]", encoding="utf-8")
        except OSError as e:
            raise StoreInitError(f"Cannot create ledger document {self._path}") from e
        logger.info("Created ledger document %s", self._path)

    def _read_records(self) -> list[SubmissionRecord]:
        try:
            return self._parse_document()
        except StoreInitError as e:
            logger.warning("%s - continuing with an empty ledger", e)
            return []

    def _read_records_for_update(self) -> list[SubmissionRecord]:
        """
        Read the document before a merge.

        A corrupt document is replaced by the write that follows. A document
        that exists but cannot be read is left alone, since rewriting it from
        an empty list would drop every record it holds.
        """
        try:
            return self._parse_document()
        except StoreInitError as e:
            if isinstance(e.__cause__, OSError):
                logger.error("%s - refusing to overwrite it", e)
                raise StoreWriteError("Failed to save submission") from e
            logger.warning("%s - continuing with an empty ledger", e)
            return []

    def _parse_document(self) -> list[SubmissionRecord]:
        self._ensure_document()
        try:
            content = self._path.read_text(encoding="utf-8")
        except OSError as e:
            raise StoreInitError(f"Cannot read ledger document {self._path}") from e

        if not content.strip():
            return []

        try:
            raw = json.loads(content)
            if not isinstance(raw, list):
                raise ValueError("document root is not an array")
            return [SubmissionRecord.from_dict(item) for item in raw]
        except (ValueError, KeyError, TypeError) as e:
            raise StoreInitError(f"Ledger document {self._path} is corrupt: {e}") from e

    def _write_records(self, records: list[SubmissionRecord]) -> None:
        tmp_path = self._path.with_name(self._path.name + ".tmp")
        try:
            content = json.dumps(
                [record.to_dict() for record in records], indent=2, ensure_ascii=False
            )
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(content, encoding="utf-8")
            os.replace(tmp_path, self._path)
        except (OSError, TypeError, ValueError) as e:
            logger.error("Failed to write ledger document %s: %s", self._path, e)
            raise StoreWriteError("Failed to save submission") from e
