"""pytest fixtures for meshforge tests.

Provides:
- postgres_container: Session-scoped testcontainer PostgreSQL instance (skipped without Docker)
- session_factory / uow_factory: Function-scoped database access with table cleanup
- fake_service: Scriptable stand-in for the remote generation service (httpx.MockTransport)
- clock: Virtual clock replacing asyncio.sleep in the poller
- settings, client, results, orchestrator: Wired components over an in-memory store
"""

import json
import os
import random
from typing import Any, AsyncGenerator

# Settings validation is relaxed in the test environment
os.environ["APP_ENV"] = "test"

import httpx
import pytest
import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from meshforge.core.config import Settings
from meshforge.core.database import create_tables, setup_db_session
from meshforge.services.generation.client import RemoteJobClient
from meshforge.services.generation.orchestrator import JobOrchestrator
from meshforge.services.generation.poller import StagePoller
from meshforge.services.generation.progress import ProgressFeed
from meshforge.services.history.kv_store import InMemoryKeyValueStore
from meshforge.services.history.result_store import ResultStore
from meshforge.uow import create_uow_factory

BASE_URL = "http://generation.test/api/ai"


@pytest.fixture(scope="session")
def postgres_container():
    """Provide session-scoped PostgreSQL container.

    Container starts once per test session and is reused across all tests.
    Tests depending on it are skipped when Docker is not available.
    """
    from testcontainers.postgres import PostgresContainer

    container = PostgresContainer(
        image="postgres:17",
        username="test",
        password="test",
        dbname="test_meshforge",
    )
    try:
        container.start()
    except Exception as e:
        pytest.skip(f"PostgreSQL container unavailable: {type(e).__name__}")

    try:
        yield container
    finally:
        container.stop()


@pytest_asyncio.fixture(scope="function")
async def session_factory(
    postgres_container,
) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Provide function-scoped session factory with the schema created.

    The key_value_entries table is emptied after each test.
    """
    db_url = postgres_container.get_connection_url(driver="psycopg")
    factory = setup_db_session(db_url, pool_size=5)
    await create_tables(factory)

    yield factory

    async with factory() as session:
        await session.execute(text("DELETE FROM key_value_entries"))
        await session.commit()

    await factory.kw["bind"].dispose()


@pytest_asyncio.fixture(scope="function")
async def uow_factory(session_factory):
    """Provide function-scoped UnitOfWork factory."""
    return create_uow_factory(session_factory)


class VirtualClock:
    """Replacement for asyncio.sleep that only advances a counter."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeGenerationService:
    """Scriptable remote generation service served through httpx.MockTransport.

    Submissions hand out task_ids in order. Each task has a script of status
    responses consumed one per poll; the last entry repeats. A script entry
    is a JSON body (dict), an HTTP error status (int) or "connect_error".
    """

    def __init__(self) -> None:
        self.task_ids: list[str] = ["p1", "r1"]
        self.submit_status = 200
        self.submit_body: Any = None
        self.proxy_status = 404
        self.status_scripts: dict[str, list[Any]] = {}
        self.submissions: list[dict[str, Any]] = []
        self.polls: list[str] = []
        self.proxy_probes: list[str] = []
        self.requests: list[httpx.Request] = []

    def script(self, task_id: str, *responses: Any) -> None:
        self.status_scripts[task_id] = list(responses)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if request.method == "POST" and path.endswith("/text-to-3d"):
            payload = json.loads(request.content)
            self.submissions.append(payload)
            if self.submit_status != 200:
                return httpx.Response(self.submit_status, json={"error": "rejected"})
            if self.submit_body is not None:
                return httpx.Response(200, json=self.submit_body)
            return httpx.Response(200, json={"task_id": self.task_ids[len(self.submissions) - 1]})

        if request.method == "GET" and path.endswith("/status"):
            task_id = path.split("/")[-2]
            self.polls.append(task_id)
            script = self.status_scripts.get(task_id) or [{"status": "IN_PROGRESS"}]
            entry = script.pop(0) if len(script) > 1 else script[0]
            if entry == "connect_error":
                raise httpx.ConnectError("connection refused", request=request)
            if isinstance(entry, int):
                return httpx.Response(entry, text="upstream error")
            return httpx.Response(200, json=entry)

        if request.method == "HEAD" and "/proxy-model/" in path:
            self.proxy_probes.append(path.rsplit("/", 1)[-1])
            return httpx.Response(self.proxy_status)

        return httpx.Response(404)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def polls_for(self, task_id: str) -> int:
        return self.polls.count(task_id)


def running(progress: Any = None) -> dict[str, Any]:
    return {"status": "IN_PROGRESS", "progress": progress}


def succeeded(**fields: Any) -> dict[str, Any]:
    return {"status": "SUCCEEDED", "progress": 100, **fields}


def failed(message: str = "generation failed") -> dict[str, Any]:
    return {"status": "FAILED", "task_error": {"message": message}}


@pytest.fixture
def clock() -> VirtualClock:
    return VirtualClock()


@pytest.fixture
def fake_service() -> FakeGenerationService:
    return FakeGenerationService()


@pytest.fixture
def settings() -> Settings:
    return Settings(APP_ENV="test", GENERATION_API_URL=BASE_URL)  # type: ignore[call-arg]


@pytest.fixture
def kv_store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def results(kv_store) -> ResultStore:
    return ResultStore(kv_store, limit=20)


@pytest.fixture
def client(fake_service) -> RemoteJobClient:
    return RemoteJobClient(BASE_URL, transport=fake_service.transport)


@pytest.fixture
def orchestrator(client, clock, results) -> JobOrchestrator:
    return JobOrchestrator(
        client=client,
        poller=StagePoller(client, interval=3.0, max_attempts=60, sleep=clock.sleep),
        results=results,
        feed=ProgressFeed(),
        rng=random.Random(7),
    )
