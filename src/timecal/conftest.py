"""Pytest configuration and shared fixtures."""

import time

import pytest
from fastapi.testclient import TestClient

from timecal.auth.dependencies import set_github_client, set_pkce_store, set_token_codec
from timecal.auth.github import GitHubOAuthClient
from timecal.auth.models import TokenClaims
from timecal.auth.pkce import PKCEStore
from timecal.auth.token_codec import TokenCodec
from timecal.main import app
from timecal.services.rate_limiter import limiter

TEST_SECRET = "test-secret"
TEST_USER_ID = "7b0a3c5e-1f4d-4a8e-9c2b-3d6e8f1a2b4c"


@pytest.fixture(autouse=True)
def disable_rate_limiting():
    """Rate limits would leak between tests through the shared in-memory limiter."""
    previous = limiter.enabled
    limiter.enabled = False
    yield
    limiter.enabled = previous


@pytest.fixture
def token_codec() -> TokenCodec:
    return TokenCodec(TEST_SECRET)


@pytest.fixture
def pkce_store() -> PKCEStore:
    return PKCEStore()


@pytest.fixture
def github_client() -> GitHubOAuthClient:
    """Configured GitHub client. Tests patch its network methods."""
    return GitHubOAuthClient(
        client_id="test-client-id",
        client_secret="test-client-secret",
        redirect_uri="http://localhost:3000/api/auth/callback",
    )


@pytest.fixture(autouse=True)
def auth_singletons(token_codec, pkce_store, github_client):
    """Install the auth singletons the lifespan would normally create."""
    set_token_codec(token_codec)
    set_pkce_store(pkce_store)
    set_github_client(github_client)
    yield
    set_token_codec(None)
    set_pkce_store(None)
    set_github_client(None)


@pytest.fixture
def test_claims() -> TokenClaims:
    return TokenClaims(
        user_id=TEST_USER_ID,
        github_id=583231,
        github_username="octocat",
        email="octocat@github.com",
        name="The Octocat",
        avatar_url="https://avatars.githubusercontent.com/u/583231",
    )


@pytest.fixture
def valid_token(token_codec: TokenCodec, test_claims: TokenClaims) -> str:
    return token_codec.issue(test_claims)


@pytest.fixture
def expired_token(token_codec: TokenCodec, test_claims: TokenClaims) -> str:
    return token_codec.issue(test_claims, ttl=60, now=time.time() - 3600)


@pytest.fixture
def auth_headers(valid_token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {valid_token}"}


@pytest.fixture
def client() -> TestClient:
    """
    Provide FastAPI test client for API testing.

    The lifespan does not run (no context manager); the auth singletons come
    from the ``auth_singletons`` fixture instead. Redirects are not followed.

    Example:
        >>> def test_health(client):
        >>>     response = client.get("/health")
        >>>     assert response.status_code == 200
    """
    return TestClient(app, follow_redirects=False)
