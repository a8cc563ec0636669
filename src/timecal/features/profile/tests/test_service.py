"""Tests for ProfileService."""

from datetime import UTC, datetime, timedelta
from unittest.mock import Mock, patch

import pytest

from timecal.auth.models import GitHubUser
from timecal.exceptions import UpstreamError, ValidationError
from timecal.features.profile.service import ProfileService, calculate_account_age
from timecal.services.database import LookupStatus

GITHUB_USER = GitHubUser(id=583231, login="octocat", email="octocat@github.com", name=None)


@pytest.fixture
def db() -> Mock:
    return Mock()


@pytest.fixture
def service(db) -> ProfileService:
    return ProfileService(db=db)


@pytest.fixture(autouse=True)
def mock_posthog():
    with patch("timecal.features.profile.service.PostHogService") as mock:
        yield mock.return_value


class TestGetProfile:
    def test_found(self, service, db):
        db.get_by_id.return_value = {"id": "u1", "timezone": "Asia/Tokyo"}

        result = service.get_profile("u1")

        assert result.status is LookupStatus.FOUND
        assert result.value.timezone == "Asia/Tokyo"

    def test_absent(self, service, db):
        db.get_by_id.return_value = None

        assert service.get_profile("u1").status is LookupStatus.ABSENT

    def test_invalid_row(self, service, db):
        db.get_by_id.return_value = {"id": "u1", "github_id": "not-a-number"}

        result = service.get_profile("u1")

        assert result.status is LookupStatus.INVALID
        assert result.is_error

    def test_database_error(self, service, db):
        db.get_by_id.side_effect = RuntimeError("boom")

        result = service.get_profile("u1")

        assert result.status is LookupStatus.FAILED
        assert isinstance(result.error, RuntimeError)


class TestProvisionGitHubUser:
    def test_new_user_gets_fresh_uuid(self, service, db, mock_posthog):
        db.get_by_field.return_value = None
        db.get_by_id.return_value = None
        db.insert_record.side_effect = lambda table, data: data

        profile = service.provision_github_user(GITHUB_USER)

        table, row = db.insert_record.call_args.args
        assert table == "profiles"
        assert len(row["id"]) == 36
        assert row["auth_provider"] == "github"
        assert row["full_name"] == "octocat"
        assert row["timezone"] == "UTC"
        assert profile.github_id == 583231
        assert mock_posthog.capture.call_args.kwargs["event"] == "profile_created"

    def test_existing_user_keeps_id_and_stored_values(self, service, db, mock_posthog):
        existing = {
            "id": "existing-id",
            "github_id": 583231,
            "full_name": "Custom Name",
            "avatar_url": "https://example.com/me.png",
            "timezone": "Europe/Paris",
        }
        db.get_by_field.return_value = existing
        db.get_by_id.return_value = existing
        db.update_record.side_effect = lambda table, record_id, data: {"id": record_id, **data}
        user = GitHubUser(id=583231, login="octocat", email=None, name="The Octocat", avatar_url=None)

        profile = service.provision_github_user(user)

        _, record_id, updates = db.update_record.call_args.args
        assert record_id == "existing-id"
        assert updates["full_name"] == "The Octocat"
        assert updates["avatar_url"] == "https://example.com/me.png"
        assert updates["timezone"] == "Europe/Paris"
        assert profile.id == "existing-id"
        db.insert_record.assert_not_called()
        mock_posthog.capture.assert_not_called()

    def test_lookup_failure_raises(self, service, db):
        db.get_by_field.side_effect = RuntimeError("db down")

        with pytest.raises(UpstreamError):
            service.provision_github_user(GITHUB_USER)

    def test_write_failure_raises(self, service, db):
        db.get_by_field.return_value = None
        db.get_by_id.return_value = None
        db.insert_record.side_effect = RuntimeError("duplicate key")

        with pytest.raises(UpstreamError):
            service.provision_github_user(GITHUB_USER)


class TestValidateUpdates:
    def test_drops_github_managed_fields(self, service):
        updates = service.validate_updates(
            {"full_name": "Mona", "github_username": "x", "github_id": 1, "auth_provider": "email"}
        )

        assert updates == {"full_name": "Mona"}

    @pytest.mark.parametrize("email", ["plain", "a@b", "a b@c.com", "@example.com"])
    def test_rejects_bad_email(self, service, email):
        with pytest.raises(ValidationError, match="Invalid email format"):
            service.validate_updates({"email": email})

    def test_accepts_iana_timezone(self, service):
        assert service.validate_updates({"timezone": "America/New_York"}) == {
            "timezone": "America/New_York"
        }

    def test_rejects_unknown_timezone(self, service):
        with pytest.raises(ValidationError, match="Invalid timezone format"):
            service.validate_updates({"timezone": "Nowhere/Special"})

    @pytest.mark.parametrize("timezone", [None, ""])
    def test_rejects_missing_timezone(self, service, timezone):
        with pytest.raises(ValidationError, match="Invalid timezone format"):
            service.validate_updates({"timezone": timezone})

    def test_nullable_fields_can_be_cleared(self, service):
        assert service.validate_updates({"email": None, "avatar_url": None}) == {
            "email": None,
            "avatar_url": None,
        }

    def test_empty_update_returns_current_profile(self, service, db):
        db.get_by_id.return_value = {"id": "u1"}

        profile = service.update_profile("u1", {"github_id": 5})

        assert profile.id == "u1"
        db.update_record.assert_not_called()


class TestCalculateAccountAge:
    NOW = datetime(2025, 6, 1, tzinfo=UTC)

    @pytest.mark.parametrize(
        ("days", "expected"),
        [
            (0, "0 days"),
            (12, "12 days"),
            (30, "1 month"),
            (95, "3 months"),
            (365, "1 year"),
            (365 + 61, "1 year, 2 months"),
            (2 * 365 + 30, "2 years, 1 month"),
        ],
    )
    def test_formats_age(self, days, expected):
        assert calculate_account_age(self.NOW - timedelta(days=days), now=self.NOW) == expected

    def test_naive_datetime_is_treated_as_utc(self):
        created = datetime(2025, 5, 22)

        assert calculate_account_age(created, now=self.NOW) == "10 days"
