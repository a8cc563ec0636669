"""Profile persistence: reads, GitHub provisioning, validated updates, stats."""

import logging
import re
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import ValidationError as PydanticValidationError

from timecal.auth.models import GitHubUser
from timecal.exceptions import UpstreamError, ValidationError
from timecal.features.profile.models import GitHubProfileData, Profile, UserStats
from timecal.services import PostHogService
from timecal.services.database import Lookup, SupabaseQueryBuilder, get_query_builder

logger = logging.getLogger(__name__)

PROFILES_TABLE = "profiles"
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
GITHUB_MANAGED_FIELDS = frozenset({"github_username", "github_id", "auth_provider"})
MAX_GITHUB_USERNAME_LENGTH = 39


class ProfileService:
    """
    Reads and writes rows of the ``profiles`` table.

    Reads return a Lookup so callers can tell "no profile yet" from "the
    database is down". Writes raise UpstreamError on database failure.
    """

    def __init__(self, db: SupabaseQueryBuilder | None = None) -> None:
        self.db = db or get_query_builder()

    def get_profile(self, user_id: str) -> Lookup[Profile]:
        """Fetch a profile by user id."""
        return self._lookup(lambda: self.db.get_by_id(PROFILES_TABLE, user_id))

    def get_profile_by_github_id(self, github_id: int) -> Lookup[Profile]:
        """Fetch the profile linked to a GitHub account."""
        return self._lookup(lambda: self.db.get_by_field(PROFILES_TABLE, "github_id", github_id))

    def _lookup(self, fetch) -> Lookup[Profile]:
        try:
            row = fetch()
        except Exception as e:
            logger.error(f"Profile lookup failed: {e}", exc_info=True)
            return Lookup.failed(e)

        if row is None:
            return Lookup.absent()

        try:
            return Lookup.found(Profile.model_validate(row))
        except PydanticValidationError as e:
            logger.warning("Profile row has unexpected shape", extra={"profile_id": row.get("id")})
            return Lookup.invalid(e)

    def provision_github_user(self, github_user: GitHubUser) -> Profile:
        """
        Create or refresh the profile for a GitHub account signing in.

        Existing users keep their profile id; new users get a fresh UUID.

        Raises:
            UpstreamError: If the database cannot be read or written
        """
        existing = self.get_profile_by_github_id(github_user.id)
        if existing.is_error:
            raise UpstreamError("Failed to look up user profile")

        user_id = existing.value.id if existing.is_found else str(uuid4())
        return self.create_or_update_github_profile(
            user_id,
            GitHubProfileData(
                github_username=github_user.login,
                github_id=github_user.id,
                email=github_user.email,
                full_name=github_user.name or github_user.login,
                avatar_url=github_user.avatar_url,
            ),
        )

    def create_or_update_github_profile(self, user_id: str, data: GitHubProfileData) -> Profile:
        """
        Upsert a profile from GitHub data, keeping stored values GitHub left blank.

        Raises:
            UpstreamError: If the database cannot be read or written
        """
        existing = self.get_profile(user_id)
        if existing.is_error:
            raise UpstreamError("Failed to look up user profile")

        try:
            if existing.is_found:
                current = existing.value
                row = self.db.update_record(
                    PROFILES_TABLE,
                    user_id,
                    {
                        "github_username": data.github_username,
                        "github_id": data.github_id,
                        "auth_provider": "github",
                        "email": data.email or current.email,
                        "full_name": data.full_name or current.full_name,
                        "avatar_url": data.avatar_url or current.avatar_url,
                        "timezone": data.timezone or current.timezone,
                    },
                )
            else:
                row = self.db.insert_record(
                    PROFILES_TABLE,
                    {
                        "id": user_id,
                        "github_username": data.github_username,
                        "github_id": data.github_id,
                        "auth_provider": "github",
                        "email": data.email,
                        "full_name": data.full_name,
                        "avatar_url": data.avatar_url,
                        "timezone": data.timezone or "UTC",
                    },
                )
        except Exception as e:
            logger.error(f"Failed to write profile for user {user_id}: {e}", exc_info=True)
            raise UpstreamError("Failed to create or update user profile") from e

        if not row:
            raise UpstreamError("Failed to create or update user profile")

        if not existing.is_found:
            PostHogService().capture(
                distinct_id=user_id,
                event="profile_created",
                properties={"auth_provider": "github", "has_email": bool(data.email)},
            )
            logger.info(f"Created profile for GitHub user {data.github_username}")

        return Profile.model_validate(row)

    def validate_updates(self, updates: dict[str, Any]) -> dict[str, Any]:
        """
        Check user-editable fields and drop GitHub-managed ones.

        Raises:
            ValidationError: If email is malformed or timezone is missing or unknown
        """
        allowed = {k: v for k, v in updates.items() if k not in GITHUB_MANAGED_FIELDS}

        email = allowed.get("email")
        if email and not self.is_valid_email(email):
            raise ValidationError("Invalid email format")

        # timezone is NOT NULL; email, name and avatar may be cleared
        if "timezone" in allowed and not self.is_valid_timezone(allowed["timezone"]):
            raise ValidationError("Invalid timezone format")

        return allowed

    def update_profile(self, user_id: str, updates: dict[str, Any]) -> Profile | None:
        """
        Apply validated updates.

        Returns:
            Updated profile, or None when the user has no profile

        Raises:
            ValidationError: If a field is invalid
            UpstreamError: If the database write fails
        """
        allowed = self.validate_updates(updates)
        if not allowed:
            current = self.get_profile(user_id)
            if current.is_error:
                raise UpstreamError("Failed to fetch profile")
            return current.value

        try:
            row = self.db.update_record(PROFILES_TABLE, user_id, allowed)
        except Exception as e:
            logger.error(f"Failed to update profile for user {user_id}: {e}", exc_info=True)
            raise UpstreamError("Failed to update profile") from e

        return Profile.model_validate(row) if row else None

    def get_user_stats(self, user_id: str, profile: Profile | None = None) -> UserStats:
        """
        Count the user's activities, sleep records and active goals.

        Raises:
            UpstreamError: If any count query fails
        """
        try:
            total_activities = self.db.count_records("activities", {"user_id": user_id})
            total_sleep_records = self.db.count_records("sleep_records", {"user_id": user_id})
            active_goals = self.db.count_records("goals", {"user_id": user_id, "is_active": True})
        except Exception as e:
            logger.error(f"Failed to count records for user {user_id}: {e}", exc_info=True)
            raise UpstreamError("Failed to fetch user statistics") from e

        created_at = profile.created_at if profile else None
        return UserStats(
            total_activities=total_activities,
            total_sleep_records=total_sleep_records,
            active_goals=active_goals,
            account_age=calculate_account_age(created_at) if created_at else "Unknown",
        )

    @staticmethod
    def is_valid_email(email: str) -> bool:
        return bool(EMAIL_PATTERN.match(email))

    @staticmethod
    def is_valid_timezone(timezone: str | None) -> bool:
        if not timezone:
            return False
        try:
            ZoneInfo(timezone)
        except (ZoneInfoNotFoundError, ValueError):
            return False
        return True

    @staticmethod
    def sanitize_for_display(profile: dict[str, Any]) -> dict[str, Any]:
        """Drop the numeric GitHub id before showing a profile."""
        return {k: v for k, v in profile.items() if k != "github_id"}


def calculate_account_age(created_at: datetime, now: datetime | None = None) -> str:
    """
    Human-readable account age ("12 days", "3 months", "1 year, 2 months").

    Months are 30 days and years 365 days.
    """
    now = now or datetime.now(UTC)
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=UTC)
    days = max((now - created_at).days, 0)

    if days < 30:
        return f"{days} days"
    if days < 365:
        months = days // 30
        return f"{months} month{'s' if months > 1 else ''}"

    years = days // 365
    remaining_months = (days % 365) // 30
    age = f"{years} year{'s' if years > 1 else ''}"
    if remaining_months > 0:
        age += f", {remaining_months} month{'s' if remaining_months > 1 else ''}"
    return age
