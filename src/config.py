from functools import lru_cache
from typing import ClassVar

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ROSTER = "elmisback,NoxNovus,jaelafield,parthrdesai,benwang33"


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    # GitHub REST API
    github_api_url: str = "https://api.github.com"
    github_repository: str = "herbie-fp/odyssey"  # owner/name
    github_token: str = ""  # Optional, empty string means unauthenticated
    github_per_page: int = 100
    github_timeout_seconds: float = 15.0

    # Tracked identities (comma-separated GitHub logins, order is display order)
    activity_roster: str = DEFAULT_ROSTER
    activity_lookback_hours: int = 24

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Lazily load and cache settings. Fails at first call, not at import time."""
    return Settings()


def parse_roster(raw: str) -> list[str]:
    """Split a comma-separated roster, keeping order and duplicates, dropping blanks."""
    return [name.strip() for name in raw.split(",") if name.strip()]
