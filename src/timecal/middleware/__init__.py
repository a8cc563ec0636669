"""HTTP middleware."""

from timecal.middleware.route_guard import RouteGuardMiddleware, classify_path

__all__ = ["RouteGuardMiddleware", "classify_path"]
