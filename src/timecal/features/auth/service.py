"""Sign-in orchestration and "who am I" enrichment."""

import logging
from typing import Any

from timecal.auth.github import GitHubOAuthClient
from timecal.auth.models import AuthenticatedUser, TokenClaims
from timecal.auth.token_codec import TokenCodec
from timecal.features.preferences.service import PreferencesService
from timecal.features.profile.service import ProfileService

logger = logging.getLogger(__name__)


async def complete_sign_in(
    github: GitHubOAuthClient,
    codec: TokenCodec,
    code: str,
    verifier: str,
    profiles: ProfileService | None = None,
) -> tuple[str, TokenClaims]:
    """
    Finish an OAuth flow: trade the code, provision the profile, issue a token.

    Args:
        github: Configured GitHub client
        codec: Token codec used to sign the session token
        code: Authorization code from the callback
        verifier: PKCE verifier stored when the flow started

    Returns:
        Tuple of (signed token, claims it carries)

    Raises:
        UpstreamError: If GitHub or the database fails
        ConfigurationError: If GitHub or the token secret is not configured
    """
    access_token = await github.exchange_code(code, verifier)
    github_user = await github.fetch_user(access_token)

    profile = (profiles or ProfileService()).provision_github_user(github_user)

    claims = TokenClaims(
        user_id=profile.id,
        github_id=github_user.id,
        github_username=github_user.login,
        email=github_user.email or profile.email,
        name=github_user.name or profile.full_name,
        avatar_url=github_user.avatar_url or profile.avatar_url,
    )
    return codec.issue(claims), claims


def describe_user(
    user: AuthenticatedUser,
    profiles: ProfileService | None = None,
    preferences: PreferencesService | None = None,
) -> dict[str, Any]:
    """
    Build the "who am I" payload for a verified user.

    Profile and preferences are read fresh. If either read fails, both are
    left out and only the token identity is returned; a missing record is
    reported as None.
    """
    identity = user.model_dump(by_alias=True)

    try:
        profile_result = (profiles or ProfileService()).get_profile(user.id)
        preferences_result = (preferences or PreferencesService()).get_preferences(user.id)
    except Exception as e:
        logger.error(f"Profile enrichment unavailable for user {user.id}: {e}", exc_info=True)
        return identity

    if profile_result.is_error or preferences_result.is_error:
        logger.warning(
            f"Returning bare identity for user {user.id}",
            extra={
                "profile_status": profile_result.status.value,
                "preferences_status": preferences_result.status.value,
            },
        )
        return identity

    identity["profile"] = (
        profile_result.value.model_dump(mode="json") if profile_result.is_found else None
    )
    identity["preferences"] = (
        preferences_result.value.model_dump(mode="json") if preferences_result.is_found else None
    )
    return identity
