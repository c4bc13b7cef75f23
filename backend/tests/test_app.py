"""
ContactBook Backend — Application Wiring Tests
================================================

What:  Startup configuration checks, health endpoint, request IDs and the
       per-IP limit on credential endpoints.
"""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.database import create_schema, dispose_engine
from app.exceptions import ConfigurationError
from app.main import create_app, init_state
from helpers import login_user, settings_for


class TestConfiguration:
    def test_complete_settings_pass(self):
        settings = settings_for()
        assert settings.missing_required() == []
        settings.validate_required()

    def test_missing_secrets_are_all_reported(self):
        settings = settings_for(jwt_access_secret="", jwt_reset_secret="", smtp_host="")
        assert settings.missing_required() == ["JWT_ACCESS_SECRET", "JWT_RESET_SECRET", "SMTP_HOST"]
        with pytest.raises(ConfigurationError) as exc:
            settings.validate_required()
        assert exc.value.context["missing"] == [
            "JWT_ACCESS_SECRET",
            "JWT_RESET_SECRET",
            "SMTP_HOST",
        ]

    def test_cloudinary_backend_needs_credentials(self):
        settings = settings_for(media_backend="CLOUDINARY")
        assert settings.media_backend == "cloudinary"
        assert "CLOUDINARY_API_SECRET" in settings.missing_required()

    def test_init_state_refuses_incomplete_settings(self, tmp_path):
        app = create_app(settings_for(storage_root=str(tmp_path), jwt_refresh_secret=""))
        with pytest.raises(ConfigurationError, match="JWT_REFRESH_SECRET"):
            init_state(app)

    def test_cookie_secure_only_in_production(self):
        assert settings_for().cookie_secure is False
        assert settings_for(environment="production").cookie_secure is True

    def test_invalid_log_level_rejected(self):
        with pytest.raises(ValueError):
            settings_for(log_level="LOUD")


class TestHealthAndRequestId:
    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"
        assert body["media_backend"] == "local"

    @pytest.mark.asyncio
    async def test_request_id_is_echoed(self, client):
        response = await client.get("/health", headers={"X-Request-ID": "trace-42"})
        assert response.headers["X-Request-ID"] == "trace-42"

    @pytest.mark.asyncio
    async def test_request_id_is_generated(self, client):
        response = await client.get("/health")
        assert len(response.headers["X-Request-ID"]) == 8


@pytest_asyncio.fixture
async def limited_client(tmp_path):
    app = create_app(settings_for(storage_root=str(tmp_path), auth_rate_limit_requests=3))
    init_state(app)
    await create_schema(app.state.engine)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    await dispose_engine(app.state.engine)


class TestAuthRateLimit:
    @pytest.mark.asyncio
    async def test_login_attempts_are_capped(self, limited_client):
        for _ in range(3):
            response = await login_user(limited_client, email="nobody@example.com")
            assert response.status_code == 401

        blocked = await login_user(limited_client, email="nobody@example.com")
        assert blocked.status_code == 429
        assert int(blocked.headers["Retry-After"]) > 0
        body = blocked.json()
        assert body["error"] == "rate_limit_exceeded"
        assert body["details"]["retry_after"] > 0

    @pytest.mark.asyncio
    async def test_other_routes_are_not_limited(self, limited_client):
        for _ in range(5):
            response = await limited_client.get("/health")
            assert response.status_code == 200
        response = await limited_client.post("/auth/refresh")
        assert response.status_code == 401
