"""Pydantic models for preferences feature."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

VALID_THEMES = ("light", "dark", "system")
VALID_LANGUAGES = ("en", "zh", "es", "fr", "de", "ja")
VALID_TIME_FORMATS = ("12h", "24h")
VALID_DATE_FORMATS = (
    "YYYY-MM-DD",
    "MM/DD/YYYY",
    "DD/MM/YYYY",
    "DD.MM.YYYY",
    "MMMM D, YYYY",
    "D MMMM YYYY",
)


class UserPreferences(BaseModel):
    """A row of the ``user_preferences`` table."""

    model_config = ConfigDict(extra="allow")

    id: str | None = None
    user_id: str
    theme: str = "system"
    language: str = "en"
    time_format: str = "24h"
    date_format: str = "YYYY-MM-DD"
    default_reminders: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None


class PreferencesUpdateRequest(BaseModel):
    """Request model for creating or updating preferences.

    Values are checked by PreferencesService so that bad values produce a
    400 with a readable message rather than a schema error.
    """

    model_config = ConfigDict(
        extra="ignore",
        json_schema_extra={"example": {"theme": "dark", "time_format": "12h"}},
    )

    theme: str | None = None
    language: str | None = None
    time_format: str | None = None
    date_format: str | None = None
    default_reminders: dict[str, Any] | None = None


class PreferencesResponse(BaseModel):
    """Response model for all /preferences endpoints."""

    preferences: dict[str, Any]
    message: str | None = None
