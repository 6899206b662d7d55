import os

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

# No external API keys for tests
os.environ["OPENAI_API_KEY"] = ""
os.environ["ANTHROPIC_API_KEY"] = ""
os.environ["LLM_PROVIDER"] = "auto"
os.environ["FEEDBACK_STRATEGY"] = "fragments"
os.environ["DUMMY_MODE"] = "false"

from speech_coach.main import app

PARIS_TRANSCRIPT = "I go to Paris last year. It was very good."

PARIS_SEGMENTS = [
    {"text": "I go to Paris last year.", "start": 0, "end": 2.0},
    {"text": "It was very good.", "start": 2.1, "end": 3.5},
]


@pytest.fixture
def paris_transcript():
    return PARIS_TRANSCRIPT


@pytest.fixture
def paris_segments():
    return [dict(segment) for segment in PARIS_SEGMENTS]


@pytest.fixture
def client():
    """Provide a synchronous TestClient for HTTP endpoint tests."""
    return TestClient(app)


@pytest_asyncio.fixture
async def async_client():
    """Provide an async httpx client for async HTTP tests."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
