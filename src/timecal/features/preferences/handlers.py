"""API handlers for the preferences endpoints."""

import logging

from fastapi import APIRouter, Depends, Query, Request

from timecal.auth.dependencies import get_current_user
from timecal.auth.models import AuthenticatedUser
from timecal.exceptions import NotFoundError, UpstreamError
from timecal.features.preferences.models import PreferencesResponse, PreferencesUpdateRequest
from timecal.features.preferences.service import PreferencesService
from timecal.services.rate_limiter import default_rate_limit, write_rate_limit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/preferences", tags=["preferences"])


def _response(preferences, message: str | None = None) -> PreferencesResponse:
    return PreferencesResponse(preferences=preferences.model_dump(mode="json"), message=message)


@router.get("", response_model=PreferencesResponse)
@default_rate_limit
async def get_preferences(
    request: Request,
    create_default: bool = Query(False, alias="createDefault"),
    current_user: AuthenticatedUser = Depends(get_current_user),
) -> PreferencesResponse:
    """
    Get the current user's preferences.

    Args:
        create_default: Create the default row when the user has none

    Raises:
        NotFoundError: 404 if the user has no preferences and create_default is off
        UpstreamError: 502 if the database fails
    """
    service = PreferencesService()

    if create_default:
        return _response(service.get_preferences_with_defaults(current_user.id))

    result = service.get_preferences(current_user.id)
    if result.is_error:
        raise UpstreamError("Failed to fetch preferences")
    if result.is_absent:
        raise NotFoundError("Preferences not found")

    return _response(result.value)


@router.post("", response_model=PreferencesResponse)
@write_rate_limit
async def save_preferences(
    request: Request,
    payload: PreferencesUpdateRequest,
    current_user: AuthenticatedUser = Depends(get_current_user),
) -> PreferencesResponse:
    """Create or replace the current user's preferences. Omitted fields get defaults."""
    preferences = PreferencesService().save_preferences(
        current_user.id, payload.model_dump(exclude_none=True)
    )
    logger.info(f"Saved preferences for user {current_user.id}")
    return _response(preferences)


@router.put("", response_model=PreferencesResponse)
@write_rate_limit
async def update_preferences(
    request: Request,
    payload: PreferencesUpdateRequest,
    current_user: AuthenticatedUser = Depends(get_current_user),
) -> PreferencesResponse:
    """Change only the fields present in the request body."""
    updates = payload.model_dump(exclude_none=True)
    preferences = PreferencesService().update_preferences(current_user.id, updates)
    logger.info(
        f"Updated preferences for user {current_user.id}",
        extra={"fields": sorted(updates)},
    )
    return _response(preferences)


@router.delete("", response_model=PreferencesResponse)
@write_rate_limit
async def reset_preferences(
    request: Request,
    current_user: AuthenticatedUser = Depends(get_current_user),
) -> PreferencesResponse:
    """Reset the current user's preferences to defaults."""
    preferences = PreferencesService().reset_to_defaults(current_user.id)
    return _response(preferences, message="Preferences reset to defaults")
