"""User preferences feature."""

from timecal.features.preferences.handlers import router
from timecal.features.preferences.service import PreferencesService

__all__ = ["router", "PreferencesService"]
