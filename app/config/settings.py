from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""
    supabase_service_role_key: Optional[str] = None  # Bypasses RLS; used for cross-user reads like leaderboards

    # Groups
    join_code_length: int = 8
    join_code_max_attempts: int = 5
    default_max_members: int = 5
    search_default_limit: int = 20

    # Leaderboard
    step_page_size: int = 1000  # PostgREST caps rows per response, so step totals are paged
    leaderboard_fetch_workers: int = 3  # current totals, previous totals, profiles

    # App
    app_name: str = "stride-groups"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:8081,http://localhost:19006,http://127.0.0.1:8081"
    rate_limit: str = "100/minute"  # slowapi format, e.g. "100/minute"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",  # No prefix needed
        extra="ignore"
    )


settings = Settings()
