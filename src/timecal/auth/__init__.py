"""Authentication module: GitHub OAuth with PKCE and signed session tokens."""

from timecal.auth.dependencies import (
    extract_token,
    get_current_user,
    get_github_client,
    get_pkce_store,
    get_token_codec,
    resolve_user,
    set_github_client,
    set_pkce_store,
    set_token_codec,
)
from timecal.auth.github import GitHubOAuthClient
from timecal.auth.models import AuthenticatedUser, GitHubUser, TokenClaims
from timecal.auth.pkce import PKCEStore, derive_challenge, generate_state, generate_verifier
from timecal.auth.token_codec import TokenCodec, read_expiry

__all__ = [
    "extract_token",
    "get_current_user",
    "get_github_client",
    "get_pkce_store",
    "get_token_codec",
    "resolve_user",
    "set_github_client",
    "set_pkce_store",
    "set_token_codec",
    "GitHubOAuthClient",
    "AuthenticatedUser",
    "GitHubUser",
    "TokenClaims",
    "PKCEStore",
    "derive_challenge",
    "generate_state",
    "generate_verifier",
    "TokenCodec",
    "read_expiry",
]
