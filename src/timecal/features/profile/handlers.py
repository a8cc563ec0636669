"""API handlers for the profile endpoints."""

import logging

from fastapi import APIRouter, Depends, Query, Request

from timecal.auth.dependencies import get_current_user
from timecal.auth.models import AuthenticatedUser
from timecal.exceptions import NotFoundError, UpstreamError
from timecal.features.profile.models import ProfileResponse, ProfileUpdateRequest
from timecal.features.profile.service import ProfileService
from timecal.services.rate_limiter import default_rate_limit, write_rate_limit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/profile", tags=["profile"])


@router.get("", response_model=ProfileResponse)
@default_rate_limit
async def get_profile(
    request: Request,
    include_stats: bool = Query(False, alias="includeStats"),
    sanitize: bool = Query(False),
    current_user: AuthenticatedUser = Depends(get_current_user),
) -> ProfileResponse:
    """
    Get the current user's profile.

    Args:
        include_stats: Also return activity/sleep/goal counts and account age
        sanitize: Drop the numeric GitHub id from the profile
        current_user: User from the verified token

    Raises:
        AuthenticationRequired: 401 without a valid token
        NotFoundError: 404 if the user has no profile
        UpstreamError: 502 if the database fails
    """
    service = ProfileService()
    result = service.get_profile(current_user.id)

    if result.is_error:
        raise UpstreamError("Failed to fetch profile")
    if result.is_absent:
        logger.warning(f"Profile not found for user {current_user.id}")
        raise NotFoundError("Profile not found")

    profile = result.value.model_dump(mode="json")
    if sanitize:
        profile = service.sanitize_for_display(profile)

    stats = service.get_user_stats(current_user.id, result.value) if include_stats else None

    return ProfileResponse(profile=profile, stats=stats)


@router.put("", response_model=ProfileResponse)
@write_rate_limit
async def update_profile(
    request: Request,
    payload: ProfileUpdateRequest,
    current_user: AuthenticatedUser = Depends(get_current_user),
) -> ProfileResponse:
    """
    Update the current user's profile.

    GitHub-managed fields (username, id, auth provider) are ignored.

    Raises:
        ValidationError: 400 for a malformed email or unknown timezone
        NotFoundError: 404 if the user has no profile
    """
    updates = payload.model_dump(exclude_unset=True)
    profile = ProfileService().update_profile(current_user.id, updates)

    if profile is None:
        raise NotFoundError("Profile not found")

    logger.info(
        f"Updated profile for user {current_user.id}",
        extra={"fields": sorted(updates)},
    )
    return ProfileResponse(profile=profile.model_dump(mode="json"))
