"""User profile endpoints and persistence."""

from timecal.features.profile.handlers import router
from timecal.features.profile.service import ProfileService

__all__ = ["router", "ProfileService"]
