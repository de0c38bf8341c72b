"""
Pytest configuration and shared fixtures.
"""

import os
from collections.abc import AsyncGenerator

# Settings are cached on first use, so the environment must be set before
# anything under src is imported
os.environ.setdefault("OTEL_EXPORTER_ENABLED", "false")
os.environ.setdefault("LOG_FORMAT", "console")
os.environ.setdefault("API_SECRET_KEY", "test-secret-key")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from src.api.auth import create_access_token  # noqa: E402
from src.api.dependencies import get_delayed_store  # noqa: E402
from src.api.main import create_app  # noqa: E402
from src.scheduler import DelayedQueue, SchedulerClient, SchedulerRegistry  # noqa: E402
from src.scheduler import registry as registry_module  # noqa: E402
from src.store import InMemoryDelayedStore  # noqa: E402

# Fixed "now" for deterministic scheduling
NOW = 1_700_000_000


@pytest.fixture
def now() -> int:
    """The fixed current time used by clients under test."""
    return NOW


@pytest.fixture
def store() -> InMemoryDelayedStore:
    """Create an empty in-memory delayed store."""
    return InMemoryDelayedStore()


@pytest.fixture
def delayed_queue(store: InMemoryDelayedStore) -> DelayedQueue:
    """Create a delayed queue over the in-memory store."""
    return DelayedQueue(store)


@pytest.fixture
def registry() -> SchedulerRegistry:
    """Create a registry with a few routed job classes."""
    registry = SchedulerRegistry()
    registry.register_queue("SomeJob", "default")
    registry.register_queue("OtherJob", "low")
    registry.register_queue("SendFollowUpEmail", "mailers")
    return registry


@pytest.fixture
def scheduler_client(delayed_queue: DelayedQueue, registry: SchedulerRegistry) -> SchedulerClient:
    """Create a scheduler client with a frozen clock."""
    return SchedulerClient(delayed_queue, registry=registry, inline=False, clock=lambda: NOW)


@pytest.fixture
def global_registry(monkeypatch: pytest.MonkeyPatch) -> SchedulerRegistry:
    """Replace the process-wide registry with a fresh, routed one."""
    registry = SchedulerRegistry()
    registry.register_queue("SomeJob", "default")
    registry.register_queue("OtherJob", "low")
    monkeypatch.setattr(registry_module, "_registry", registry)
    return registry


@pytest_asyncio.fixture
async def app(store: InMemoryDelayedStore, global_registry: SchedulerRegistry) -> AsyncGenerator[FastAPI]:
    """Create a FastAPI app backed by the in-memory store."""
    app = create_app()
    app.dependency_overrides[get_delayed_store] = lambda: store
    yield app
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    """Create an async HTTP client for testing."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def auth_headers() -> dict[str, str]:
    """Create authentication headers for testing."""
    token = create_access_token(subject="test-operator")
    return {
        "Authorization": f"Bearer {token}",
    }
