"""
Integration tests for health check endpoints and application lifespan.
"""

from datetime import datetime

import pytest


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_health_endpoint(self, async_client):
        """Test /health returns ok with an ISO timestamp and no auth."""
        response = await async_client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["timestamp"].endswith("Z")
        datetime.fromisoformat(data["timestamp"].replace("Z", "+00:00"))

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_root_reports_configuration_without_secrets(self, async_client):
        response = await async_client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "running"
        assert data["configuration"]["telegram"] == "set"
        assert data["configuration"]["chatId"] == "set"
        assert "test-bot-token" not in response.text

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_unknown_path(self, async_client):
        response = await async_client.get("/does-not-exist")

        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_options_on_any_path(self, async_client):
        response = await async_client.options("/does-not-exist")

        assert response.status_code == 200
        assert response.content == b""
        assert response.headers["access-control-allow-origin"] == "*"


class TestLifespan:
    """Tests for startup and shutdown of shared collaborators."""

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_lifespan_initializes_and_releases_state(self):
        from upload_relay.main import app, lifespan
        from upload_relay.core.identity import FirebaseTokenVerifier
        from upload_relay.core.telegram_client import TelegramClient
        from upload_relay.services.upload_service import UploadService

        async with lifespan(app):
            assert isinstance(app.state.token_verifier, FirebaseTokenVerifier)
            assert isinstance(app.state.telegram_client, TelegramClient)
            assert isinstance(app.state.upload_service, UploadService)
            assert app.state.upload_service.telegram is app.state.telegram_client
            # No service account in the test environment
            assert app.state.token_verifier.is_initialized is False
            assert app.state.telegram_client.is_configured is True

        assert app.state.token_verifier.is_initialized is False

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_unconfigured_verifier_yields_500(self, app, async_client):
        """Without a service account, authenticated requests fail as internal errors."""
        from upload_relay.api.dependencies import get_token_verifier
        from upload_relay.core.identity import FirebaseTokenVerifier

        verifier = FirebaseTokenVerifier()
        verifier.initialize()
        app.dependency_overrides[get_token_verifier] = lambda: verifier

        response = await async_client.post(
            "/upload", headers={"Authorization": "Bearer some-token"}
        )

        assert response.status_code == 500
        assert response.json()["code"] == "INTERNAL_ERROR"
