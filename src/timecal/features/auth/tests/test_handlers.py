"""Tests for the OAuth, /auth/me and logout handlers."""

from unittest.mock import AsyncMock, patch
from urllib.parse import parse_qs, urlparse

import pytest
from fastapi.testclient import TestClient

from timecal.auth.models import GitHubUser
from timecal.auth.pkce import derive_challenge
from timecal.config import settings
from timecal.exceptions import UpstreamError
from timecal.features.profile.models import Profile
from timecal.services.database import Lookup

PROFILE_ID = "9f1c2d3e-4b5a-6978-8a9b-0c1d2e3f4a5b"
GITHUB_USER = GitHubUser(
    id=583231,
    login="octocat",
    email="octocat@github.com",
    name="The Octocat",
    avatar_url="https://avatars.githubusercontent.com/u/583231",
)


def login_redirect_error(response) -> str | None:
    location = urlparse(response.headers["location"])
    assert location.path == "/auth/login"
    return parse_qs(location.query).get("error", [None])[0]


def set_flow_cookies(client: TestClient, session_id: str, state: str) -> None:
    client.cookies.set("oauth_session", session_id)
    client.cookies.set("oauth_state", state)


@pytest.fixture(autouse=True)
def mock_posthog():
    with patch("timecal.features.auth.handlers.PostHogService") as mock:
        yield mock.return_value


class TestStartGitHubOAuth:
    def test_redirects_to_github_with_pkce(self, client, pkce_store):
        response = client.get("/api/auth/github")

        assert response.status_code == 302
        location = urlparse(response.headers["location"])
        params = parse_qs(location.query)
        assert location.netloc == "github.com"
        assert params["code_challenge_method"] == ["S256"]
        assert params["redirect_uri"] == ["http://localhost:3000/api/auth/callback"]

        session_id = response.cookies["oauth_session"]
        verifier = pkce_store.lookup(session_id)
        assert params["code_challenge"] == [derive_challenge(verifier)]
        assert params["state"] == [response.cookies["oauth_state"]]
        assert len(response.cookies["oauth_state"]) == 32

    def test_sets_httponly_lax_cookies(self, client):
        response = client.get("/api/auth/github")

        cookie_headers = response.headers.get_list("set-cookie")
        assert len(cookie_headers) == 2
        for header in cookie_headers:
            lowered = header.lower()
            assert "httponly" in lowered
            assert "samesite=lax" in lowered
            assert "max-age=600" in lowered
            assert "path=/" in lowered

    def test_unconfigured_client_returns_500_without_side_effects(
        self, client, github_client, pkce_store
    ):
        github_client.client_id = None

        response = client.get("/api/auth/github")

        assert response.status_code == 500
        assert "error" in response.json()
        assert len(pkce_store) == 0
        assert "set-cookie" not in response.headers


class TestGitHubOAuthCallback:
    @pytest.fixture
    def github_calls(self, github_client):
        with (
            patch.object(github_client, "exchange_code", AsyncMock(return_value="gho_abc")) as exchange,
            patch.object(github_client, "fetch_user", AsyncMock(return_value=GITHUB_USER)) as fetch,
        ):
            yield exchange, fetch

    @pytest.fixture
    def mock_profiles(self):
        with patch("timecal.features.auth.service.ProfileService") as mock:
            mock.return_value.provision_github_user.return_value = Profile(
                id=PROFILE_ID,
                email="octocat@github.com",
                full_name="The Octocat",
                github_username="octocat",
                github_id=583231,
                auth_provider="github",
            )
            yield mock.return_value

    def test_success_redirects_with_verifiable_token(
        self, client, pkce_store, token_codec, github_calls, mock_profiles, mock_posthog
    ):
        session_id = pkce_store.create("the-verifier")
        set_flow_cookies(client, session_id, "state-xyz")

        response = client.get("/api/auth/callback", params={"code": "abc", "state": "state-xyz"})

        assert response.status_code == 302
        location = urlparse(response.headers["location"])
        assert f"{location.scheme}://{location.netloc}" == settings.base_url
        assert location.path == "/auth/callback"
        token = parse_qs(location.query)["token"][0]

        claims = token_codec.verify(token)
        assert claims.user_id == PROFILE_ID
        assert claims.github_username == "octocat"
        assert claims.exp - claims.iat == 24 * 60 * 60

        exchange, _ = github_calls
        exchange.assert_awaited_once_with("abc", "the-verifier")
        mock_profiles.provision_github_user.assert_called_once_with(GITHUB_USER)
        assert mock_posthog.capture.call_args.kwargs["event"] == "user_signed_in"

    def test_success_clears_oauth_cookies_and_consumes_session(
        self, client, pkce_store, github_calls, mock_profiles
    ):
        session_id = pkce_store.create("v")
        set_flow_cookies(client, session_id, "s")

        response = client.get("/api/auth/callback", params={"code": "abc", "state": "s"})

        cleared = " ".join(response.headers.get_list("set-cookie"))
        assert 'oauth_session=""' in cleared
        assert 'oauth_state=""' in cleared
        assert pkce_store.lookup(session_id) is None

    def test_provider_error_is_forwarded(self, client):
        response = client.get("/api/auth/callback", params={"error": "access_denied"})

        assert response.status_code == 302
        assert login_redirect_error(response) == "access_denied"

    def test_missing_code(self, client):
        response = client.get("/api/auth/callback", params={"state": "s"})

        assert login_redirect_error(response) == "Missing authorization code"

    def test_missing_session_cookie(self, client, github_calls):
        response = client.get("/api/auth/callback", params={"code": "abc", "state": "s"})

        assert login_redirect_error(response) == "Invalid state parameter"
        github_calls[0].assert_not_awaited()

    def test_state_mismatch_issues_no_token(self, client, pkce_store, github_calls):
        session_id = pkce_store.create("v")
        set_flow_cookies(client, session_id, "expected-state")

        response = client.get("/api/auth/callback", params={"code": "abc", "state": "forged"})

        assert login_redirect_error(response) == "Invalid state parameter"
        assert "token=" not in response.headers["location"]
        github_calls[0].assert_not_awaited()
        assert pkce_store.lookup(session_id) == "v"

    def test_expired_session(self, client, github_calls):
        set_flow_cookies(client, "unknown-session", "s")

        response = client.get("/api/auth/callback", params={"code": "abc", "state": "s"})

        assert login_redirect_error(response) == "OAuth session expired"
        github_calls[0].assert_not_awaited()

    def test_github_failure_redirects_with_generic_error(self, client, pkce_store, github_client):
        set_flow_cookies(client, pkce_store.create("v"), "s")

        with patch.object(
            github_client,
            "exchange_code",
            AsyncMock(side_effect=UpstreamError("GitHub token exchange rejected: bad_verification_code")),
        ):
            response = client.get("/api/auth/callback", params={"code": "abc", "state": "s"})

        assert login_redirect_error(response) == "Authentication failed"

    def test_database_failure_redirects_with_generic_error(
        self, client, pkce_store, github_calls, mock_profiles
    ):
        mock_profiles.provision_github_user.side_effect = UpstreamError("Failed to look up user profile")
        set_flow_cookies(client, pkce_store.create("v"), "s")

        response = client.get("/api/auth/callback", params={"code": "abc", "state": "s"})

        assert login_redirect_error(response) == "Authentication failed"


class TestGetMe:
    @pytest.fixture
    def mock_services(self):
        with (
            patch("timecal.features.auth.service.ProfileService") as profiles,
            patch("timecal.features.auth.service.PreferencesService") as preferences,
        ):
            yield profiles.return_value, preferences.return_value

    def test_without_token_returns_401(self, client):
        response = client.get("/api/auth/me")

        assert response.status_code == 401
        assert response.json() == {"error": "No authentication token"}

    def test_expired_token_returns_401(self, client, expired_token):
        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {expired_token}"})

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid or expired token"}

    def test_returns_identity_with_profile_and_preferences(
        self, client, auth_headers, test_claims, mock_services
    ):
        profiles, preferences = mock_services
        profiles.get_profile.return_value = Lookup.found(
            Profile(id=test_claims.user_id, timezone="Europe/Paris")
        )
        preferences.get_preferences.return_value = Lookup.absent()

        response = client.get("/api/auth/me", headers=auth_headers)

        assert response.status_code == 200
        user = response.json()["user"]
        assert user["id"] == test_claims.user_id
        assert user["githubId"] == 583231
        assert user["githubUsername"] == "octocat"
        assert user["avatarUrl"] == test_claims.avatar_url
        assert user["profile"]["timezone"] == "Europe/Paris"
        assert user["preferences"] is None

    def test_enrichment_failure_returns_bare_identity(self, client, auth_headers, mock_services):
        profiles, preferences = mock_services
        profiles.get_profile.return_value = Lookup.failed(RuntimeError("db down"))
        preferences.get_preferences.return_value = Lookup.absent()

        response = client.get("/api/auth/me", headers=auth_headers)

        assert response.status_code == 200
        user = response.json()["user"]
        assert user["githubUsername"] == "octocat"
        assert "profile" not in user
        assert "preferences" not in user

    def test_unreachable_database_returns_bare_identity(self, client, auth_headers):
        with patch(
            "timecal.features.auth.service.ProfileService", side_effect=RuntimeError("no database")
        ):
            response = client.get("/api/auth/me", headers=auth_headers)

        assert response.status_code == 200
        assert "profile" not in response.json()["user"]

    def test_legacy_cookie_is_accepted(self, client, valid_token, mock_services):
        profiles, preferences = mock_services
        profiles.get_profile.return_value = Lookup.absent()
        preferences.get_preferences.return_value = Lookup.absent()
        client.cookies.set("auth_token", valid_token)

        response = client.get("/api/auth/me")

        assert response.status_code == 200


class TestLogout:
    def test_post_always_succeeds(self, client):
        response = client.post("/api/auth/logout")

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert response.json()["message"]

    def test_post_with_token_tracks_sign_out(self, client, auth_headers, test_claims, mock_posthog):
        response = client.post("/api/auth/logout", headers=auth_headers)

        assert response.status_code == 200
        mock_posthog.capture.assert_called_once_with(
            distinct_id=test_claims.user_id, event="user_signed_out"
        )

    def test_post_clears_legacy_cookies(self, client):
        response = client.post("/api/auth/logout")

        cleared = " ".join(response.headers.get_list("set-cookie"))
        assert 'auth_token=""' in cleared

    def test_get_redirects_to_login_and_clears_cookies(self, client):
        response = client.get("/api/auth/logout")

        assert response.status_code == 302
        assert response.headers["location"] == f"{settings.base_url}/auth/login"
        cleared = " ".join(response.headers.get_list("set-cookie"))
        for name in ("auth_token", "oauth_session", "oauth_state"):
            assert f'{name}=""' in cleared
