from datetime import timezone, tzinfo
from zoneinfo import ZoneInfo

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "sqlite:///./learnsync.db"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Prepended to every collection name; lets several stores share one database.
    STORE_KEY_PREFIX: str = "ls_"

    # Single time reference for day bucketing and "today". IANA name or "UTC".
    STATS_TIMEZONE: str = "UTC"
    HEATMAP_DAYS: int = 365

    @property
    def stats_tzinfo(self) -> tzinfo:
        if self.STATS_TIMEZONE.strip().upper() == "UTC":
            return timezone.utc
        return ZoneInfo(self.STATS_TIMEZONE.strip())


settings = Settings()
