"""User preferences persistence and validation."""

import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from timecal.exceptions import UpstreamError, ValidationError
from timecal.features.preferences.models import (
    VALID_DATE_FORMATS,
    VALID_LANGUAGES,
    VALID_THEMES,
    VALID_TIME_FORMATS,
    UserPreferences,
)
from timecal.services.database import Lookup, SupabaseQueryBuilder, get_query_builder

logger = logging.getLogger(__name__)

PREFERENCES_TABLE = "user_preferences"
REMINDER_KINDS = ("activities", "sleep", "goals")
DEFAULT_BEFORE_MINUTES = 15
DEFAULT_AFTER_MINUTES = 0

DEFAULT_PREFERENCES: dict[str, Any] = {
    "theme": "system",
    "language": "en",
    "time_format": "24h",
    "date_format": "YYYY-MM-DD",
    "default_reminders": {"activities": True, "sleep": True, "goals": True},
}

_ALLOWED_VALUES = {
    "theme": (VALID_THEMES, "Invalid theme"),
    "language": (VALID_LANGUAGES, "Invalid language"),
    "time_format": (VALID_TIME_FORMATS, "Invalid time format"),
    "date_format": (VALID_DATE_FORMATS, "Invalid date format"),
}


def default_preferences() -> dict[str, Any]:
    """Fresh copy of the defaults, safe to mutate."""
    return {
        **DEFAULT_PREFERENCES,
        "default_reminders": dict(DEFAULT_PREFERENCES["default_reminders"]),
    }


class PreferencesService:
    """Reads and writes rows of the ``user_preferences`` table (one per user)."""

    def __init__(self, db: SupabaseQueryBuilder | None = None) -> None:
        self.db = db or get_query_builder()

    def get_preferences(self, user_id: str) -> Lookup[UserPreferences]:
        """Fetch the user's preferences row."""
        try:
            row = self.db.get_by_field(PREFERENCES_TABLE, "user_id", user_id)
        except Exception as e:
            logger.error(f"Preferences lookup failed for user {user_id}: {e}", exc_info=True)
            return Lookup.failed(e)

        if row is None:
            return Lookup.absent()

        try:
            return Lookup.found(UserPreferences.model_validate(row))
        except PydanticValidationError as e:
            logger.warning("Preferences row has unexpected shape", extra={"user_id": user_id})
            return Lookup.invalid(e)

    def get_preferences_with_defaults(self, user_id: str) -> UserPreferences:
        """
        Return stored preferences, creating the default row if there is none.

        Raises:
            UpstreamError: If the database cannot be read or written
        """
        result = self.get_preferences(user_id)
        if result.is_found:
            return result.value
        if result.is_error:
            raise UpstreamError("Failed to fetch preferences")
        return self.create_default_preferences(user_id)

    def create_default_preferences(self, user_id: str) -> UserPreferences:
        """Write the default row for a user."""
        logger.info(f"Creating default preferences for user {user_id}")
        return self._upsert(user_id, default_preferences())

    def save_preferences(self, user_id: str, preferences: dict[str, Any]) -> UserPreferences:
        """
        Replace the user's preferences.

        Fields missing from ``preferences`` fall back to their defaults.

        Raises:
            ValidationError: If a provided value is not allowed
            UpstreamError: If the database write fails
        """
        validated = self.validate_preferences(preferences)
        return self._upsert(user_id, {**default_preferences(), **validated})

    def update_preferences(self, user_id: str, updates: dict[str, Any]) -> UserPreferences:
        """
        Change only the provided fields.

        Raises:
            ValidationError: If a provided value is not allowed
            UpstreamError: If the database write fails
        """
        validated = self.validate_preferences(updates)
        if not validated:
            return self.get_preferences_with_defaults(user_id)
        return self._upsert(user_id, validated)

    def reset_to_defaults(self, user_id: str) -> UserPreferences:
        """Overwrite every field with its default."""
        logger.info(f"Resetting preferences to defaults for user {user_id}")
        return self._upsert(user_id, default_preferences())

    def validate_preferences(self, preferences: dict[str, Any]) -> dict[str, Any]:
        """
        Check the provided fields and normalize reminders.

        ``None`` values are treated as not provided.

        Raises:
            ValidationError: On the first value outside its allowed set
        """
        validated: dict[str, Any] = {}
        for field, (allowed, message) in _ALLOWED_VALUES.items():
            value = preferences.get(field)
            if value is None:
                continue
            if value not in allowed:
                raise ValidationError(message)
            validated[field] = value

        reminders = preferences.get("default_reminders")
        if reminders is not None:
            validated["default_reminders"] = self.validate_reminders(reminders)

        return validated

    @staticmethod
    def validate_reminders(reminders: dict[str, Any]) -> dict[str, Any]:
        """
        Normalize a reminders object.

        Non-boolean flags become True. A ``timing`` object gets its missing
        minutes filled with the defaults; any other ``timing`` value is dropped.
        """
        normalized: dict[str, Any] = {
            kind: reminders[kind] if isinstance(reminders.get(kind), bool) else True
            for kind in REMINDER_KINDS
        }

        timing = reminders.get("timing")
        if isinstance(timing, dict):
            before = timing.get("before_minutes")
            after = timing.get("after_minutes")
            normalized["timing"] = {
                "before_minutes": before if _is_minutes(before) else DEFAULT_BEFORE_MINUTES,
                "after_minutes": after if _is_minutes(after) else DEFAULT_AFTER_MINUTES,
            }

        return normalized

    def _upsert(self, user_id: str, fields: dict[str, Any]) -> UserPreferences:
        try:
            row = self.db.upsert_record(
                PREFERENCES_TABLE,
                {"user_id": user_id, **fields},
                conflict_columns=["user_id"],
            )
        except Exception as e:
            logger.error(f"Failed to save preferences for user {user_id}: {e}", exc_info=True)
            raise UpstreamError("Failed to save preferences") from e

        return UserPreferences.model_validate(row)


def _is_minutes(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0
