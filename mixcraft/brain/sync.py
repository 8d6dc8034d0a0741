"""MIXCRAFT Sync Orchestrator — best-effort cloud backup of progress.

Local repositories are always the source of truth. Changes are queued,
coalesced over a short debounce window and pushed in the background;
failures are logged and surfaced as ``SyncStatus.ERROR`` but never roll
local state back. On sign-in a full reconcile runs:

    pull remote → merge → write back locally (silently) → bulk push

Reconcile is idempotent, so re-running it after a partial failure is safe.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from enum import StrEnum
from typing import Any, Protocol

import httpx
import structlog

from mixcraft.brain.merge import merge_progress
from mixcraft.brain.progress import ChallengeProgress, ProgressRepositories
from mixcraft.config import settings

logger = structlog.get_logger()


class SyncStatus(StrEnum):
    IDLE = "idle"
    SYNCING = "syncing"
    SYNCED = "synced"
    ERROR = "error"


class RemoteSyncError(Exception):
    """The remote progress store could not be reached or rejected a request."""


class RemoteProgressStore(Protocol):
    """The three operations the orchestrator needs from a remote store.

    Implementations should raise :class:`RemoteSyncError` on failure. Any
    other exception is still caught by the orchestrator, logged and shown
    as ``SyncStatus.ERROR``.
    """

    async def fetch_all(self) -> dict[str, ChallengeProgress]: ...

    async def upsert(self, record: ChallengeProgress) -> None: ...

    async def bulk_upsert(self, records: list[ChallengeProgress]) -> None: ...


# ── HTTP Remote ──────────────────────────────────────────


class HttpProgressStore:
    """Remote store backed by the MIXCRAFT progress API."""

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
        chunk_size: int | None = None,
    ) -> None:
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout if timeout is not None else settings.remote_timeout_s,
        )
        self._headers = {"Authorization": f"Bearer {token}"}
        self._chunk_size = chunk_size or settings.bulk_chunk_size

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, url, headers=self._headers, **kwargs)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise RemoteSyncError(f"{method} {url} failed: {e}") from e
        return response

    async def fetch_all(self) -> dict[str, ChallengeProgress]:
        response = await self._request("GET", "/api/progress")
        try:
            payload = response.json().get("progress", {})
            return {
                challenge_id: ChallengeProgress.from_dict({**record, "challenge_id": challenge_id})
                for challenge_id, record in payload.items()
            }
        except (ValueError, TypeError, AttributeError) as e:
            raise RemoteSyncError(f"GET /api/progress returned an unreadable body: {e}") from e

    async def upsert(self, record: ChallengeProgress) -> None:
        await self._request("PUT", f"/api/progress/{record.challenge_id}", json=record.to_dict())

    async def bulk_upsert(self, records: list[ChallengeProgress]) -> None:
        for start in range(0, len(records), self._chunk_size):
            chunk = records[start : start + self._chunk_size]
            await self._request("POST", "/api/progress/bulk", json={"records": [r.to_dict() for r in chunk]})

    async def aclose(self) -> None:
        await self._client.aclose()


# ── Orchestrator ─────────────────────────────────────────


class SyncOrchestrator:
    """Keeps the five repositories backed up to a remote store."""

    def __init__(
        self,
        repositories: ProgressRepositories,
        remote: RemoteProgressStore | None = None,
        debounce_s: float | None = None,
    ) -> None:
        self.repositories = repositories
        self.remote = remote
        self.debounce_s = settings.sync_debounce_s if debounce_s is None else debounce_s
        self.status = SyncStatus.IDLE
        self.last_error: str | None = None
        self._queue: asyncio.Queue[ChallengeProgress] | None = None
        self._worker: asyncio.Task[None] | None = None
        self._unsubscribe: Callable[[], None] | None = None

    # ── Lifecycle ──

    def start(self) -> None:
        """Begin listening for local changes (needs a running event loop)."""
        if self._worker is not None:
            return
        self._queue = asyncio.Queue()
        self._worker = asyncio.create_task(self._run(self._queue))
        self._unsubscribe = self.repositories.subscribe(self._on_change)
        logger.info("sync.started", debounce_s=self.debounce_s)

    async def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None
        self._queue = None
        logger.info("sync.stopped")

    async def sign_in(self, remote: RemoteProgressStore) -> dict[str, ChallengeProgress] | None:
        """Attach a remote store for the signed-in identity and reconcile."""
        self.remote = remote
        return await self.reconcile()

    def sign_out(self) -> None:
        self.remote = None
        self.status = SyncStatus.IDLE
        self.last_error = None

    async def drain(self) -> None:
        """Wait until every queued change has been pushed (or failed)."""
        if self._queue is not None:
            await self._queue.join()

    # ── Reconcile ──

    async def reconcile(self) -> dict[str, ChallengeProgress] | None:
        """Pull, merge, write back and push. Returns the merged map, or None on failure."""
        if self.remote is None:
            return None
        self._set_status(SyncStatus.SYNCING)
        try:
            remote_progress = await self.remote.fetch_all()
            merged = merge_progress(self.repositories.all_progress(), remote_progress)
            changed = self.repositories.write_back(merged, notify=False)
            await self.remote.bulk_upsert(list(merged.values()))
        except Exception as e:
            self._fail("sync.reconcile_failed", e)
            return None
        self._set_status(SyncStatus.SYNCED)
        logger.info("sync.reconciled", records=len(merged), local_changes=changed)
        return merged

    # ── Background Push ──

    def _on_change(self, records: list[ChallengeProgress]) -> None:
        if self._queue is None or self.remote is None:
            return
        for record in records:
            self._queue.put_nowait(record)

    async def _run(self, queue: asyncio.Queue[ChallengeProgress]) -> None:
        while True:
            first = await queue.get()
            batch = {first.challenge_id: first}
            taken = 1
            while True:
                try:
                    record = await asyncio.wait_for(queue.get(), timeout=self.debounce_s)
                except TimeoutError:
                    break
                batch[record.challenge_id] = record
                taken += 1
            try:
                await self._push(list(batch.values()))
            finally:
                for _ in range(taken):
                    queue.task_done()

    async def _push(self, records: list[ChallengeProgress]) -> None:
        if self.remote is None or not records:
            return
        self._set_status(SyncStatus.SYNCING)
        try:
            if len(records) == 1:
                await self.remote.upsert(records[0])
            else:
                await self.remote.bulk_upsert(records)
        except Exception as e:
            self._fail("sync.push_failed", e)
            return
        self._set_status(SyncStatus.SYNCED)
        logger.info("sync.pushed", count=len(records))

    # ── Status ──

    def _set_status(self, status: SyncStatus) -> None:
        self.status = status
        if status is not SyncStatus.ERROR:
            self.last_error = None

    def _fail(self, event: str, error: Exception) -> None:
        self.status = SyncStatus.ERROR
        self.last_error = str(error)
        logger.warning(event, error=str(error), error_type=type(error).__name__)
