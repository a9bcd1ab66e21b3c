from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str

    # Text-completion providers (OpenRouter preferred when both are set)
    openrouter_api_key: str | None = None
    openai_api_key: str | None = None

    # Clerk Auth
    clerk_secret_key: str | None = None
    clerk_frontend_api: str = "clerk.your-domain.com"  # e.g., "prepared-mole-42.clerk.accounts.dev"

    # Sentry error monitoring
    sentry_dsn: str | None = None

    # Environment
    environment: str = "development"

    # API Settings
    api_title: str = "Meal Planner API"
    api_version: str = "1.0.0"

    # Recipe import
    fetch_timeout_seconds: float = 30.0
    fetch_user_agent: str = "Mozilla/5.0 (compatible; MealPlannerBot/1.0; +https://mealplanner.app)"
    fetch_max_redirects: int = 5
    llm_timeout_seconds: float = 30.0
    llm_content_char_limit: int = 15000

    @property
    def llm_enabled(self) -> bool:
        """Check if any text-completion provider is configured."""
        return bool(self.openrouter_api_key or self.openai_api_key)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @property
    def async_database_url(self) -> str:
        """Convert database URL to async format for SQLAlchemy."""
        url = self.database_url
        # Convert to asyncpg driver
        if url.startswith("postgres://"):
            url = url.replace("postgres://", "postgresql+asyncpg://", 1)
        elif url.startswith("postgresql://"):
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        # Remove sslmode parameter (handled separately by asyncpg)
        if "?sslmode=" in url:
            url = url.split("?sslmode=")[0]
        elif "&sslmode=" in url:
            url = url.replace("&sslmode=require", "").replace("&sslmode=prefer", "")
        return url


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
