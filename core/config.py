from datetime import timedelta
from pydantic_settings import BaseSettings
from pydantic import BaseModel, ConfigDict


class Settings(BaseSettings):
    model_config = ConfigDict(env_file=".env")

    ENV: str = "development"

    DATABASE_URL: str
    DB_POOL_TIMEOUT_SECONDS: int = 10
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    JWT_ISSUER: str = "session-service"
    JWT_AUDIENCES: list[str] = ["web"]
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    MAX_ACTIVE_DEVICES: int = 3
    MAX_FAILED_LOGIN_ATTEMPTS: int = 5
    LOCKOUT_MINUTES: int = 15
    TOKEN_RETENTION_MINUTES: int = 0
    CLEANUP_INTERVAL_SECONDS: int = 3600
    CLEANUP_BATCH_SIZE: int = 500
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]


class SessionPolicy(BaseModel):
    """
    Process-wide session rules, built once at startup and handed to the
    services that need them.
    """
    model_config = ConfigDict(frozen=True)

    audiences: tuple[str, ...]
    access_token_ttl: timedelta
    refresh_token_ttl: timedelta
    max_devices: int
    retention: timedelta = timedelta(0)
    cleanup_batch_size: int = 500

    @property
    def default_audience(self) -> str:
        return self.audiences[0]

    @classmethod
    def from_settings(cls, settings: Settings) -> "SessionPolicy":
        if not settings.JWT_AUDIENCES:
            raise ValueError("JWT_AUDIENCES must list at least one audience")

        return cls(
            audiences=tuple(settings.JWT_AUDIENCES),
            access_token_ttl=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
            refresh_token_ttl=timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
            max_devices=settings.MAX_ACTIVE_DEVICES,
            retention=timedelta(minutes=settings.TOKEN_RETENTION_MINUTES),
            cleanup_batch_size=settings.CLEANUP_BATCH_SIZE,
        )


settings = Settings()
