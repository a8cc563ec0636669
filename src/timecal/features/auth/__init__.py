"""GitHub OAuth sign-in, current user and logout endpoints."""

from timecal.features.auth.handlers import router

__all__ = ["router"]
