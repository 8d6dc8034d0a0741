"""MIXCRAFT Sync Tests — reconcile, debounced pushes, failure handling, HTTP client."""

import asyncio
import json

import httpx
import pytest

from mixcraft.brain.progress import ChallengeProgress, ProgressRepositories
from mixcraft.brain.sync import HttpProgressStore, RemoteSyncError, SyncOrchestrator, SyncStatus
from mixcraft.qc.scoring import AxisScore, ScoreBreakdown, ScoreResult


class FakeRemote:
    """In-memory remote store that records calls."""

    def __init__(self, records=None, fail=False):
        self.records = dict(records or {})
        self.fail = fail
        self.upserts: list[str] = []
        self.bulk_calls: list[list[str]] = []

    async def fetch_all(self):
        if self.fail:
            raise RemoteSyncError("offline")
        return dict(self.records)

    async def upsert(self, record):
        if self.fail:
            raise RemoteSyncError("offline")
        self.upserts.append(record.challenge_id)
        self.records[record.challenge_id] = record

    async def bulk_upsert(self, records):
        if self.fail:
            raise RemoteSyncError("offline")
        self.bulk_calls.append([r.challenge_id for r in records])
        for record in records:
            self.records[record.challenge_id] = record


def _result(overall, passed=True):
    breakdown = ScoreBreakdown(axes={"eq": AxisScore("eq", overall)})
    return ScoreResult(overall=overall, stars=2, passed=passed, breakdown=breakdown)


# ── Test 1: Reconcile ────────────────────────────────────

def test_reconcile_merges_both_ways():
    repos = ProgressRepositories()
    repos.submit("F1-01", _result(70))
    remote = FakeRemote({
        "F1-01": ChallengeProgress("F1-01", best_score=90, stars=3, attempts=5, completed=True),
        "DS1-01": ChallengeProgress("DS1-01", best_score=40, attempts=2),
    })
    orchestrator = SyncOrchestrator(repos, debounce_s=0.01)

    merged = asyncio.run(orchestrator.sign_in(remote))

    assert orchestrator.status is SyncStatus.SYNCED
    assert merged is not None
    local = repos.get("F1-01")
    assert (local.best_score, local.stars, local.attempts) == (90, 3, 5)
    assert local.breakdown == {"eq": 70}
    assert repos.get("DS1-01").attempts == 2
    assert sorted(remote.bulk_calls[0]) == ["DS1-01", "F1-01"]


def test_reconcile_is_idempotent():
    repos = ProgressRepositories()
    repos.submit("F1-01", _result(70))
    remote = FakeRemote({"P1-01": ChallengeProgress("P1-01", best_score=60, attempts=1)})
    orchestrator = SyncOrchestrator(repos, remote=remote)

    first = asyncio.run(orchestrator.reconcile())
    snapshot = repos.all_progress()
    second = asyncio.run(orchestrator.reconcile())

    assert first == second
    assert repos.all_progress() == snapshot


def test_reconcile_failure_keeps_local_state():
    repos = ProgressRepositories()
    repos.submit("F1-01", _result(70))
    before = repos.all_progress()
    orchestrator = SyncOrchestrator(repos, remote=FakeRemote(fail=True))

    assert asyncio.run(orchestrator.reconcile()) is None
    assert orchestrator.status is SyncStatus.ERROR
    assert orchestrator.last_error == "offline"
    assert repos.all_progress() == before


def test_reconcile_without_remote_is_noop():
    orchestrator = SyncOrchestrator(ProgressRepositories())
    assert asyncio.run(orchestrator.reconcile()) is None
    assert orchestrator.status is SyncStatus.IDLE


# ── Test 2: Debounced pushes ─────────────────────────────

def test_changes_are_coalesced_and_pushed():
    async def scenario():
        repos = ProgressRepositories()
        remote = FakeRemote()
        orchestrator = SyncOrchestrator(repos, remote=remote, debounce_s=0.05)
        orchestrator.start()
        repos.submit("F1-01", _result(60))
        repos.submit("F1-01", _result(80))
        repos.submit("P1-01", _result(70))
        await asyncio.sleep(0.01)
        await orchestrator.drain()
        await orchestrator.stop()
        return repos, remote, orchestrator

    repos, remote, orchestrator = asyncio.run(scenario())
    assert remote.bulk_calls == [["F1-01", "P1-01"]]
    assert remote.records["F1-01"].attempts == 2
    assert orchestrator.status is SyncStatus.SYNCED


def test_single_change_uses_upsert():
    async def scenario():
        repos = ProgressRepositories()
        remote = FakeRemote()
        orchestrator = SyncOrchestrator(repos, remote=remote, debounce_s=0.01)
        orchestrator.start()
        repos.submit("SM1-01", _result(75))
        await asyncio.sleep(0.005)
        await orchestrator.drain()
        await orchestrator.stop()
        return remote

    remote = asyncio.run(scenario())
    assert remote.upserts == ["SM1-01"]


def test_push_failure_sets_error_without_rollback():
    async def scenario():
        repos = ProgressRepositories()
        orchestrator = SyncOrchestrator(repos, remote=FakeRemote(fail=True), debounce_s=0.01)
        orchestrator.start()
        repos.submit("F1-01", _result(85))
        await asyncio.sleep(0.005)
        await orchestrator.drain()
        await orchestrator.stop()
        return repos, orchestrator

    repos, orchestrator = asyncio.run(scenario())
    assert orchestrator.status is SyncStatus.ERROR
    assert repos.get("F1-01").best_score == 85


def test_signed_out_changes_are_not_queued():
    async def scenario():
        repos = ProgressRepositories()
        remote = FakeRemote()
        orchestrator = SyncOrchestrator(repos, remote=remote, debounce_s=0.01)
        orchestrator.start()
        orchestrator.sign_out()
        repos.submit("F1-01", _result(85))
        await orchestrator.drain()
        await orchestrator.stop()
        return remote, orchestrator

    remote, orchestrator = asyncio.run(scenario())
    assert remote.upserts == []
    assert orchestrator.status is SyncStatus.IDLE


# ── Test 3: HTTP remote ──────────────────────────────────

def _mock_client(handler):
    return httpx.AsyncClient(base_url="http://mixcraft.test", transport=httpx.MockTransport(handler))


def test_http_store_round_trip():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.method, request.url.path, request.headers.get("authorization")))
        if request.method == "GET":
            return httpx.Response(200, json={"progress": {"F1-01": {"best_score": 70, "attempts": 2}}})
        return httpx.Response(200, json={})

    async def scenario():
        store = HttpProgressStore("http://mixcraft.test", "tok", client=_mock_client(handler), chunk_size=2)
        fetched = await store.fetch_all()
        await store.upsert(ChallengeProgress("F1-01", best_score=80))
        await store.bulk_upsert([ChallengeProgress(f"F1-0{i}") for i in range(5)])
        await store.aclose()
        return fetched

    fetched = asyncio.run(scenario())
    assert fetched["F1-01"].best_score == 70
    assert fetched["F1-01"].challenge_id == "F1-01"
    assert [s[:2] for s in seen] == [
        ("GET", "/api/progress"),
        ("PUT", "/api/progress/F1-01"),
        ("POST", "/api/progress/bulk"),
        ("POST", "/api/progress/bulk"),
        ("POST", "/api/progress/bulk"),
    ]
    assert all(s[2] == "Bearer tok" for s in seen)


def test_http_store_wraps_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={"detail": "down"})

    async def scenario():
        store = HttpProgressStore("http://mixcraft.test", "tok", client=_mock_client(handler))
        try:
            await store.fetch_all()
        finally:
            await store.aclose()

    with pytest.raises(RemoteSyncError):
        asyncio.run(scenario())


def test_http_store_bulk_payload_shape():
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"count": 1})

    async def scenario():
        store = HttpProgressStore("http://mixcraft.test", "tok", client=_mock_client(handler))
        await store.bulk_upsert([ChallengeProgress("F1-01", best_score=10, attempts=1)])
        await store.aclose()

    asyncio.run(scenario())
    assert bodies[0]["records"][0]["challenge_id"] == "F1-01"
    assert bodies[0]["records"][0]["best_score"] == 10


def test_unreadable_remote_body_sets_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>proxy</html>")

    async def scenario():
        repos = ProgressRepositories()
        repos.submit("F1-01", _result(70))
        before = repos.all_progress()
        store = HttpProgressStore("http://mixcraft.test", "tok", client=_mock_client(handler))
        orchestrator = SyncOrchestrator(repos)
        merged = await orchestrator.sign_in(store)
        await store.aclose()
        return merged, orchestrator, repos.all_progress() == before

    merged, orchestrator, unchanged = asyncio.run(scenario())
    assert merged is None
    assert orchestrator.status is SyncStatus.ERROR
    assert unchanged


def test_http_store_rejects_non_mapping_payload():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=["not", "a", "map"])

    async def scenario():
        store = HttpProgressStore("http://mixcraft.test", "tok", client=_mock_client(handler))
        try:
            await store.fetch_all()
        finally:
            await store.aclose()

    with pytest.raises(RemoteSyncError):
        asyncio.run(scenario())


# ── Test 4: Worker survives unexpected remote errors ─────

class FlakyRemote(FakeRemote):
    """Raises a non-sync error until repaired."""

    def __init__(self):
        super().__init__()
        self.broken = True

    async def upsert(self, record):
        if self.broken:
            raise ConnectionResetError("connection reset by peer")
        await super().upsert(record)


def test_worker_survives_unexpected_errors():
    async def scenario():
        repos = ProgressRepositories()
        remote = FlakyRemote()
        orchestrator = SyncOrchestrator(repos, remote=remote, debounce_s=0.01)
        orchestrator.start()

        repos.submit("F1-01", _result(60))
        await asyncio.wait_for(orchestrator.drain(), timeout=2)
        failed = (orchestrator.status, orchestrator.last_error)

        remote.broken = False
        repos.submit("P1-01", _result(70))
        await asyncio.wait_for(orchestrator.drain(), timeout=2)
        alive = not orchestrator._worker.done()
        await orchestrator.stop()
        return remote, orchestrator, failed, alive

    remote, orchestrator, failed, alive = asyncio.run(scenario())
    assert failed == (SyncStatus.ERROR, "connection reset by peer")
    assert alive
    assert remote.upserts == ["P1-01"]
    assert orchestrator.status is SyncStatus.SYNCED


def test_reconcile_catches_unexpected_errors():
    class Exploding(FakeRemote):
        async def fetch_all(self):
            raise ConnectionResetError("reset")

    orchestrator = SyncOrchestrator(ProgressRepositories(), remote=Exploding())
    assert asyncio.run(orchestrator.reconcile()) is None
    assert orchestrator.status is SyncStatus.ERROR
