"""Shared services module for external integrations."""

from timecal.services.analytics import PostHogService

__all__ = [
    "PostHogService",
]
