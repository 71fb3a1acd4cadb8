from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_NAME: str = "menux-backend"
    version: str = "0.1.0"
    DEBUG: bool = False
    APP_DOMAIN: str = "example.com"
    APP_DATABASE_DSN: str = "sqlite:////tmp/menux.db"
    REDIS_URL: str = "redis://localhost:6379"

    # Bearer tokens (HS256)
    JWT_SECRET: str = "change-me"
    JWT_ALGORITHM: str = "HS256"
    JWT_TTL_HOURS: int = 12

    # Subscription lifecycle defaults
    SUB_TRIAL_ENABLED: bool = True
    SUB_TRIAL_DAYS_DEFAULT: int = 14
    SUB_TRIAL_ONCE_PER_RESTAURANT: bool = True
    SUB_GRACE_DAYS_DEFAULT: int = 3
    SUB_NOTIFY_DAYS_BEFORE_TRIAL_END: int = 3
    SUB_NOTIFY_DAYS_BEFORE_PERIOD_END: int = 5

    # Realtime transports
    REALTIME_WS_ENABLED: bool = True
    REALTIME_SSE_ENABLED: bool = True
    SSE_HEARTBEAT_SECONDS: float = 25.0
    REALTIME_QUEUE_SIZE: int = 100

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"


settings = Settings()
