"""Response models for the auth endpoints."""

from typing import Any

from pydantic import BaseModel


class MeResponse(BaseModel):
    """
    Response of GET /auth/me.

    ``user`` holds the camelCase identity, plus ``profile`` and
    ``preferences`` when both could be read.
    """

    user: dict[str, Any]


class LogoutResponse(BaseModel):
    success: bool = True
    message: str
