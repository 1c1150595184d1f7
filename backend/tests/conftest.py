"""
Pytest configuration and shared fixtures for lernbuddy tests.

This module provides:
- Async database session fixtures (in-memory SQLite)
- Mock API clients (OpenAI, Anthropic)
- Learner, catalog and task factories
- An HTTP client for the app with a faked LLM gateway
"""

import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LLM_GATEWAY_API_KEY", "test-gateway-key")

import random
from collections.abc import AsyncGenerator, Callable
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from lernbuddy.models import (
    Competency,
    Profile,
    SubjectAssessment,
    TaskItem,
    TaskPackage,
    UserInterest,
    get_db,
    get_session_factory,
)
from lernbuddy.models.base import Base
from lernbuddy.services.llm_gateway import LLMGatewayClient
from lernbuddy.services.weakness_classifier import KeywordWeaknessClassifier


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
async def async_engine():
    """Create an async engine with in-memory SQLite for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(async_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Provide a transactional database session for tests.

    Each test gets a fresh session that's rolled back after the test.
    """
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture(scope="function")
async def db(db_session: AsyncSession) -> AsyncSession:
    """Alias for db_session for convenience."""
    return db_session


# =============================================================================
# Mock API Clients
# =============================================================================

@pytest.fixture
def mock_openai_client():
    """Mock OpenAI client for the task simplifier."""
    mock_client = AsyncMock()

    mock_chat_response = MagicMock()
    mock_chat_response.choices = [
        MagicMock(message=MagicMock(content="### Aufgabe\nRechne 3 + 4.\n\n### Hinweise\n- Zähle weiter."))
    ]
    mock_client.chat.completions.create = AsyncMock(return_value=mock_chat_response)

    return mock_client


@pytest.fixture
def mock_anthropic_client():
    """Mock Anthropic client for testing."""
    mock_client = AsyncMock()

    mock_response = MagicMock()
    mock_response.content = [MagicMock(text="[]")]
    mock_client.messages.create = AsyncMock(return_value=mock_response)

    return mock_client


# =============================================================================
# Learner and Catalog Fixtures
# =============================================================================

@pytest.fixture
async def profile(db: AsyncSession) -> Profile:
    """A fifth grader with a few interests."""
    learner = Profile(
        display_name="Mia",
        grade_level=5,
        federal_state="Bayern",
        buddy_personality="funny",
    )
    db.add(learner)
    await db.flush()

    for interest, intensity in [("Pferde", 9), ("Minecraft", 7), ("Backen", 4)]:
        db.add(UserInterest(user_id=learner.id, interest=interest, intensity=intensity))
    await db.flush()
    return learner


@pytest.fixture
def make_competency(db: AsyncSession) -> Callable:
    """Factory adding a catalog entry."""
    async def _make(
        subject: str = "Mathematik",
        grade_level: int = 5,
        title: str = "Brüche vergleichen",
        is_mandatory: bool = True,
        federal_state: str | None = None,
    ) -> Competency:
        competency = Competency(
            subject=subject,
            grade_level=grade_level,
            competency_domain="Zahlen und Operationen",
            title=title,
            description=f"{title} im Alltag anwenden",
            is_mandatory=is_mandatory,
            federal_state=federal_state,
        )
        db.add(competency)
        await db.flush()
        return competency

    return _make


@pytest.fixture
def make_assessment(db: AsyncSession) -> Callable:
    """Factory adding a subject assessment for a learner."""
    async def _make(
        user_id: str,
        subject: str,
        estimated_level: int,
        actual_grade_level: int,
        is_priority: bool = True,
    ) -> SubjectAssessment:
        assessment = SubjectAssessment(
            user_id=user_id,
            subject=subject,
            estimated_level=estimated_level,
            actual_grade_level=actual_grade_level,
            discrepancy=actual_grade_level - estimated_level,
            is_priority=is_priority,
        )
        db.add(assessment)
        await db.flush()
        return assessment

    return _make


@pytest.fixture
async def task_item(db: AsyncSession, profile: Profile) -> TaskItem:
    """An uploaded, simplified exercise of the learner."""
    package = TaskPackage(user_id=profile.id, title="Hausaufgaben Montag", subject="Mathematik")
    db.add(package)
    await db.flush()

    item = TaskItem(
        package_id=package.id,
        user_id=profile.id,
        original_image_url="https://example.org/aufgabe.png",
        simplified_content="### Aufgabe\nWie viel ist 3 mal 4?",
        task_type="calculation",
        position=0,
    )
    db.add(item)
    await db.flush()
    return item


# =============================================================================
# Gateway and App Fixtures
# =============================================================================

SSE_BODY = (
    b'data: {"choices":[{"delta":{"content":"Hallo Mia!"}}]}\n\n'
    b'data: {"choices":[{"delta":{"content":" Wie geht es dir?"}}]}\n\n'
    b"data: [DONE]\n\n"
)


class FakeGateway:
    """Records gateway requests and answers from a queue; the last entry repeats."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.replies: list[tuple[int, bytes] | Exception] = []

    def queue(self, *replies: tuple[int, bytes] | Exception) -> None:
        self.replies.extend(replies)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        reply = self.replies.pop(0) if len(self.replies) > 1 else (
            self.replies[0] if self.replies else (200, SSE_BODY)
        )
        if isinstance(reply, Exception):
            raise reply
        status, content = reply
        return httpx.Response(
            status, content=content, headers={"content-type": "text/event-stream"}
        )


@pytest.fixture
def fake_gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def gateway_client(fake_gateway: FakeGateway) -> LLMGatewayClient:
    """Gateway client talking to the fake upstream without backoff delays."""
    return LLMGatewayClient(
        client=httpx.AsyncClient(transport=httpx.MockTransport(fake_gateway.handler)),
        url="https://gateway.test/v1/chat/completions",
        api_key="test-gateway-key",
        model="test-model",
        max_attempts=3,
        backoff_base_seconds=0,
    )


@pytest.fixture
async def client(db, session_factory, gateway_client) -> AsyncGenerator[httpx.AsyncClient, None]:
    """HTTP client for the app with database and upstreams overridden."""
    from lernbuddy.main import app
    from lernbuddy.routers.chat import get_classifier, get_gateway_client, get_rng

    async def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_gateway_client] = lambda: gateway_client
    app.dependency_overrides[get_classifier] = lambda: KeywordWeaknessClassifier()
    app.dependency_overrides[get_rng] = lambda: random.Random(0)

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client

    app.dependency_overrides.clear()
    await gateway_client.aclose()


# =============================================================================
# Environment Setup
# =============================================================================

@pytest.fixture(autouse=True)
def setup_test_environment():
    """Set up test environment variables."""
    original_env = os.environ.copy()

    os.environ["LLM_GATEWAY_API_KEY"] = "test-gateway-key"
    os.environ["ANTHROPIC_API_KEY"] = "test-key-for-testing"
    os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

    yield

    os.environ.clear()
    os.environ.update(original_env)
