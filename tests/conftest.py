"""
Shared pytest fixtures.

The remote GPU queue is faked with httpx.MockTransport; the job store is the
in-memory implementation unless a test asks for the SQLite-backed one.
"""

import json
from datetime import timedelta

import httpx
import pytest

from i2v.config import Settings
from i2v.db.base import Base
from i2v.db.session import build_engine, build_session_factory
from i2v.models import status as st
from i2v.services.job_router import JobRouter
from i2v.services.job_store import SqlJobStore
from i2v.services.memory_store import InMemoryJobStore
from i2v.services.reconciler import StatusReconciler
from i2v.services.remote_client import RemoteBackendClient
from i2v.services.workflow import WorkflowPayloadBuilder
from i2v.utils.clock import utcnow


class FakeRemoteBackend:
    """Scriptable stand-in for the provider's HTTP API."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.statuses: dict[str, dict] = {}
        self.missing: set[str] = set()
        self.queue_depth = 0
        self.fail_with: int | None = None
        self._next_id = 0

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            return httpx.Response(self.fail_with, json={"error": "boom"})

        path = request.url.path
        if request.method == "POST" and path == "/run":
            self._next_id += 1
            job_id = f"rp-{self._next_id}"
            self.statuses[job_id] = {"id": job_id, "status": "IN_QUEUE"}
            return httpx.Response(200, json={"id": job_id, "status": "IN_QUEUE"})
        if path == "/health":
            return httpx.Response(
                200,
                json={"jobs": {"inQueue": self.queue_depth, "inProgress": 1, "completed": 7, "failed": 0},
                      "workers": {"idle": 1, "running": 1}},
            )
        job_id = path.rsplit("/", 1)[-1]
        if job_id in self.missing or job_id not in self.statuses:
            return httpx.Response(404, json={"error": "not found"})
        if path.startswith("/status/"):
            return httpx.Response(200, json=self.statuses[job_id])
        if path.startswith("/retry/"):
            self.statuses[job_id] = {"id": job_id, "status": "IN_QUEUE"}
            return httpx.Response(200, json={"id": job_id, "status": "IN_QUEUE"})
        return httpx.Response(404)

    def set_status(self, job_id: str, status: str, files: list | None = None) -> None:
        body = {"id": job_id, "status": status}
        if files is not None:
            body["output"] = {"files": files}
        self.statuses[job_id] = body

    def calls(self, method: str, prefix: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path.startswith(prefix)]

    def last_payload(self) -> dict:
        return json.loads(self.calls("POST", "/run")[-1].content)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        DATABASE_URL="sqlite+aiosqlite://",
        JWT_SECRET_KEY="test-secret",
        REMOTE_ENDPOINT_URL="https://queue.example.com",
        REMOTE_API_KEY="rp-key",
        WORKER_TASK_SECRET="worker-secret",
        WEBHOOK_SECRET="hook-secret",
        PUBLIC_BASE_URL="https://app.example.com",
        MIGRATION_SWEEP_INTERVAL_SECONDS=0,
        _env_file=None,
    )


@pytest.fixture
def store() -> InMemoryJobStore:
    return InMemoryJobStore()


@pytest.fixture
async def sql_store(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'jobs.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield SqlJobStore(build_session_factory(engine))
    await engine.dispose()


@pytest.fixture(params=["memory", "sql"])
async def any_store(request, sql_store):
    if request.param == "memory":
        return InMemoryJobStore()
    return sql_store


@pytest.fixture
def fake_remote() -> FakeRemoteBackend:
    return FakeRemoteBackend()


@pytest.fixture
async def remote(fake_remote):
    client = RemoteBackendClient(
        "https://queue.example.com",
        "rp-key",
        transport=httpx.MockTransport(fake_remote.handler),
    )
    yield client
    await client.aclose()


@pytest.fixture
def builder() -> WorkflowPayloadBuilder:
    return WorkflowPayloadBuilder("https://app.example.com", "hook-secret")


@pytest.fixture
def router(store, remote, builder) -> JobRouter:
    return JobRouter(store, remote, builder)


@pytest.fixture
def local_only_router(store, builder) -> JobRouter:
    return JobRouter(store, None, builder)


@pytest.fixture
def clock():
    """Mutable clock: tests advance it with clock.now += timedelta(...)."""

    class Clock:
        def __init__(self):
            self.now = utcnow()

        def __call__(self):
            return self.now

    return Clock()


@pytest.fixture
def reconciler(store, router, clock) -> StatusReconciler:
    return StatusReconciler(store, router, timeout=timedelta(minutes=30), clock=clock)


@pytest.fixture
async def free_user(store):
    return await store.create_user("free", roles=["free-tier"])


@pytest.fixture
async def paid_user(store):
    return await store.create_user("paid", roles=["paid-tier"])


@pytest.fixture
def make_entry(store):
    async def _make(user, status=st.UPLOADED, **fields):
        return await store.create_entry(user.id, "https://cdn.example.com/in.png", status=status, **fields)

    return _make
