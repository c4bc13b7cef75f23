"""Request helpers shared by the HTTP-level tests."""

from typing import Dict

from httpx import AsyncClient

from app.config import Settings


def cookie_header(**cookies: str) -> Dict[str, str]:
    """Explicit Cookie header; takes precedence over the client's cookie jar."""
    return {"Cookie": "; ".join(f"{k}={v}" for k, v in cookies.items())}


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


async def register_user(
    client: AsyncClient,
    name: str = "Alice Example",
    email: str = "alice@example.com",
    password: str = "secret123",
):
    return await client.post(
        "/auth/register", json={"name": name, "email": email, "password": password}
    )


async def login_user(
    client: AsyncClient,
    email: str = "alice@example.com",
    password: str = "secret123",
):
    return await client.post("/auth/login", json={"email": email, "password": password})


def auth_headers(response) -> Dict[str, str]:
    """Bearer + sessionId cookie from a register/login/refresh response."""
    headers = bearer(response.json()["data"]["accessToken"])
    headers.update(cookie_header(sessionId=response.cookies["sessionId"]))
    return headers


def settings_for(storage_root: str = "./storage", **overrides) -> Settings:
    """Settings isolated from the developer's .env and environment secrets."""
    values = dict(
        environment="test",
        app_domain="http://frontend.test",
        database_url="sqlite+aiosqlite://",
        jwt_access_secret="test-access-secret-0123456789abcdef",
        jwt_refresh_secret="test-refresh-secret-0123456789abcdef",
        jwt_reset_secret="test-reset-secret-0123456789abcdef",
        bcrypt_rounds=4,
        media_backend="local",
        storage_root=storage_root,
        smtp_host="smtp.test",
        smtp_from="noreply@contactbook.test",
        retry_max_attempts=2,
        retry_min_wait=0,
        retry_max_wait=0,
        auth_rate_limit_requests=1000,
        log_level="WARNING",
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)
