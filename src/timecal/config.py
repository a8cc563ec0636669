"""Application configuration using Pydantic Settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # System Configuration
    api_prefix: str = "/api"
    debug: bool = False
    environment: str = "development"
    cors_origins: str = "http://localhost:3000"
    rate_limit_enabled: bool = True

    # Public URL the browser uses to reach this app (OAuth redirects, login page)
    base_url: str = "http://localhost:3000"

    # GitHub OAuth Configuration
    github_client_id: str | None = None
    github_client_secret: str | None = None
    github_timeout_seconds: float = 10.0

    # Token Configuration
    jwt_secret: str | None = None
    token_ttl_seconds: int = 24 * 60 * 60  # 24 hours

    # OAuth flow state
    oauth_cookie_max_age_seconds: int = 10 * 60
    pkce_ttl_seconds: int = 10 * 60
    pkce_sweep_interval_seconds: int = 60

    # Supabase Configuration
    supabase_url: str = "https://test.supabase.co"
    supabase_anon_key: str = "test-anon-key"
    supabase_service_role_key: str = "test-service-role-key"

    # PostHog Configuration
    posthog_api_key: str | None = None
    posthog_host: str = "https://app.posthog.com"

    @property
    def is_production(self) -> bool:
        """Whether the app runs in production (secure cookies, quiet diagnostics)."""
        return self.environment.lower() == "production"


settings = Settings()
