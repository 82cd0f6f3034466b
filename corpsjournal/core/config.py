from datetime import timedelta, timezone

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "sqlite:///./corps_journal.db"
    APP_ENV: str = "development"
    APP_VERSION: str = "1.0.0"
    LOG_LEVEL: str = "INFO"

    # Private root for permanent media copies (images/ and audio/ live under it).
    MEDIA_ROOT: str = "./media"

    # Nigeria has no DST, so a fixed offset is exact.
    SERVICE_TIMEZONE_NAME: str = "Africa/Lagos"
    SERVICE_UTC_OFFSET_HOURS: int = 1

    # Comma-separated, ranked. Failing sources are dropped from the median.
    TIME_SOURCE_URLS: str = (
        "http://worldtimeapi.org/api/timezone/Africa/Lagos,"
        "http://worldtimeapi.org/api/timezone/Etc/GMT-1,"
        "https://timeapi.io/api/Time/current/zone?timeZone=Africa/Lagos"
    )
    TIME_SOURCE_TIMEOUT_SECONDS: float = 5.0

    GRACE_PERIOD_DAYS: int = 30

    # Comma-separated allowed origins, or "*" to allow all.
    CORS_ORIGINS: str = "*"

    @property
    def cors_origins_list(self) -> list[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def time_source_urls_list(self) -> list[str]:
        return [u.strip() for u in self.TIME_SOURCE_URLS.split(",") if u.strip()]

    @property
    def service_timezone(self) -> timezone:
        return timezone(
            timedelta(hours=self.SERVICE_UTC_OFFSET_HOURS),
            self.SERVICE_TIMEZONE_NAME,
        )


settings = Settings()
