"""Product analytics."""

from timecal.services.analytics.posthog import PostHogService

__all__ = ["PostHogService"]
