"""Data models for authentication."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class TokenClaims(BaseModel):
    """
    Identity claims carried by a signed auth token.

    Serialized with camelCase keys (``userId``, ``githubId``, ...) because
    browser code reads ``exp`` straight out of the token payload.

    Attributes:
        user_id: Profile id of the signed-in user ('userId' claim)
        github_id: Numeric GitHub account id
        github_username: GitHub login
        email: Primary verified email, if GitHub shared one
        name: Display name
        avatar_url: GitHub avatar URL
        iat: Issued-at, seconds since epoch (set by the codec)
        exp: Expiry, seconds since epoch (set by the codec)
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_id: str
    github_id: int
    github_username: str
    email: str | None = None
    name: str | None = None
    avatar_url: str | None = None
    iat: int | None = None
    exp: int | None = None

    def identity(self) -> dict[str, Any]:
        """Return the identity claims without the validity window."""
        return self.model_dump(exclude={"iat", "exp"})


class AuthenticatedUser(BaseModel):
    """
    User resolved from a verified token.

    Example:
        >>> user = AuthenticatedUser.from_claims(claims)
        >>> user.github_username
        'octocat'
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    github_id: int
    github_username: str
    email: str | None = None
    name: str | None = None
    avatar_url: str | None = None

    @classmethod
    def from_claims(cls, claims: TokenClaims) -> "AuthenticatedUser":
        return cls(
            id=claims.user_id,
            github_id=claims.github_id,
            github_username=claims.github_username,
            email=claims.email,
            name=claims.name,
            avatar_url=claims.avatar_url,
        )


class GitHubUser(BaseModel):
    """GitHub account data fetched during the OAuth callback."""

    id: int
    login: str
    email: str | None = None
    name: str | None = None
    avatar_url: str | None = Field(None, description="Avatar image URL")
