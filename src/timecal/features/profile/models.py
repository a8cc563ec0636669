"""Pydantic models for profile feature."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class Profile(BaseModel):
    """A row of the ``profiles`` table."""

    model_config = ConfigDict(extra="allow")

    id: str
    email: str | None = None
    full_name: str | None = None
    avatar_url: str | None = None
    timezone: str = "UTC"
    github_username: str | None = None
    github_id: int | None = None
    auth_provider: Literal["email", "github"] | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class GitHubProfileData(BaseModel):
    """Profile fields taken from a GitHub account at sign-in."""

    github_username: str
    github_id: int
    email: str | None = None
    full_name: str | None = None
    avatar_url: str | None = None
    timezone: str | None = None


class ProfileUpdateRequest(BaseModel):
    """Request model for updating the current user's profile.

    GitHub-managed fields are accepted but ignored so older clients that send
    the whole profile back keep working.
    """

    model_config = ConfigDict(
        extra="ignore",
        json_schema_extra={
            "example": {"full_name": "Mona Lisa Octocat", "timezone": "Europe/Paris"}
        },
    )

    email: str | None = Field(None, max_length=255)
    full_name: str | None = Field(None, max_length=255)
    avatar_url: str | None = None
    timezone: str | None = Field(None, max_length=64)
    github_username: str | None = None
    github_id: int | None = None
    auth_provider: str | None = None


class UserStats(BaseModel):
    """Activity counts shown on the profile page."""

    model_config = ConfigDict(populate_by_name=True)

    total_activities: int = Field(alias="totalActivities", ge=0)
    total_sleep_records: int = Field(alias="totalSleepRecords", ge=0)
    active_goals: int = Field(alias="activeGoals", ge=0)
    account_age: str = Field(alias="accountAge")


class ProfileResponse(BaseModel):
    """Response model for GET/PUT /profile."""

    profile: dict[str, Any]
    stats: UserStats | None = None
