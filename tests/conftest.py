"""
Pytest configuration and fixtures for the test suite.

This module provides shared fixtures for unit and integration tests.
"""

import os
import uuid
from pathlib import Path
from typing import Any, AsyncGenerator, Dict, List, Optional

import httpx
import pytest
import pytest_asyncio
from faker import Faker
from httpx import AsyncClient, ASGITransport

# Set test environment before importing app modules
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "123456:test-bot-token")
os.environ.setdefault("TELEGRAM_CHAT_ID", "-1001234567890")
os.environ.setdefault("LOG_LEVEL", "WARNING")

fake = Faker()

TEST_BOT_TOKEN = "123456:test-bot-token"
TEST_CHAT_ID = "-1001234567890"
VALID_TOKEN = "valid-firebase-id-token"


# =============================================================================
# Test Doubles
# =============================================================================

class FakeTokenVerifier:
    """Accepts VALID_TOKEN and rejects everything else."""

    def __init__(self, identity):
        self.identity = identity
        self.calls: List[str] = []

    async def verify(self, token: str):
        from upload_relay.core.exceptions import TokenInvalidError

        self.calls.append(token)
        if token != VALID_TOKEN:
            raise TokenInvalidError("Token expired")
        return self.identity


class TelegramRecorder:
    """httpx.MockTransport handler imitating the Bot API sendDocument method."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.status_code = 200
        self.payload: Optional[Dict[str, Any]] = None
        self.error: Optional[Exception] = None
        self._message_id = 100

    @property
    def calls(self) -> int:
        return len(self.requests)

    def fail_with(self, description: str, status_code: int = 400) -> None:
        self.status_code = status_code
        self.payload = {"ok": False, "error_code": status_code, "description": description}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if self.payload is not None:
            return httpx.Response(self.status_code, json=self.payload)

        self._message_id += 1
        return httpx.Response(
            200,
            json={
                "ok": True,
                "result": {
                    "message_id": self._message_id,
                    "date": 1700000000,
                    "chat": {"id": int(TEST_CHAT_ID), "type": "channel"},
                    "document": {
                        "file_id": f"BQACAgQAAx0-{uuid.uuid4().hex}",
                        "file_unique_id": uuid.uuid4().hex[:16],
                        "file_name": "upload",
                        "mime_type": "application/octet-stream",
                        "file_size": 10,
                    },
                },
            },
        )


def staged_files(staging_dir: Path) -> List[Path]:
    """Files currently left in a staging directory."""
    if not staging_dir.exists():
        return []
    return list(staging_dir.iterdir())


def create_auth_header(token: str) -> Dict[str, str]:
    """Create an authorization header with a bearer token."""
    return {"Authorization": f"Bearer {token}"}


# =============================================================================
# Test Data Generators
# =============================================================================

@pytest.fixture
def identity():
    """Verified identity of the test caller."""
    from upload_relay.models.schemas import IdentityClaim

    return IdentityClaim(uid=fake.uuid4()[:28], email=fake.email(), name=fake.name())


@pytest.fixture
def token_verifier(identity) -> FakeTokenVerifier:
    return FakeTokenVerifier(identity)


@pytest.fixture
def auth_headers() -> Dict[str, str]:
    return create_auth_header(VALID_TOKEN)


# =============================================================================
# Telegram / Upload Service Fixtures
# =============================================================================

@pytest.fixture
def telegram_recorder() -> TelegramRecorder:
    return TelegramRecorder()


@pytest.fixture
def telegram_client(telegram_recorder):
    from upload_relay.core.telegram_client import TelegramClient

    return TelegramClient(
        bot_token=TEST_BOT_TOKEN,
        chat_id=TEST_CHAT_ID,
        timeout=5.0,
        transport=httpx.MockTransport(telegram_recorder),
    )


@pytest.fixture
def staging_dir(tmp_path) -> Path:
    return tmp_path / "staging"


@pytest.fixture
def leftover_files(staging_dir):
    """Callable listing the files still present in the staging directory."""
    return lambda: staged_files(staging_dir)


@pytest.fixture
def upload_service(telegram_client, staging_dir):
    from upload_relay.services.upload_service import UploadService

    return UploadService(
        telegram=telegram_client,
        staging_dir=staging_dir,
        max_file_size=1024 * 1024,
        chunk_size=4,
    )


# =============================================================================
# Application Fixtures
# =============================================================================

@pytest.fixture
def app(token_verifier, upload_service):
    """FastAPI app with collaborators injected through dependency overrides."""
    from upload_relay.main import app as fastapi_app
    from upload_relay.api.dependencies import get_token_verifier, get_upload_service

    fastapi_app.dependency_overrides[get_token_verifier] = lambda: token_verifier
    fastapi_app.dependency_overrides[get_upload_service] = lambda: upload_service
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def async_client(app, telegram_client) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client for API testing."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as client:
        yield client
    await telegram_client.aclose()


# =============================================================================
# File Content Fixtures
# =============================================================================

@pytest.fixture
def ten_byte_file() -> bytes:
    return b"0123456789"


