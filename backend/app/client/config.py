from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="MENUX_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    API_BASE_URL: str = "http://localhost:8000/api"
    REQUEST_TIMEOUT_SECONDS: float = 10.0

    # Primary (STOMP over WebSocket) kill switch; False means SSE only
    WS_ENABLED: bool = True
    FALLBACK_GRACE_SECONDS: float = 2.0
    ATTEMPT_THROTTLE_SECONDS: float = 2.0

    # Reconnect backoff: min(max, base * 2 ** min(retry, exponent_cap))
    PRIMARY_MAX_RETRIES: int = 5
    RETRY_BASE_SECONDS: float = 1.0
    RETRY_MAX_SECONDS: float = 30.0
    RETRY_EXPONENT_CAP: int = 5

    COUNTDOWN_TICK_SECONDS: float = 1.0
    DASHBOARD_REFRESH_SECONDS: float = 30.0
    ORDER_TRACKING_SECONDS: float = 15.0

    # Substring event-type matching for servers that emit free-form types
    LEGACY_EVENT_MATCHING: bool = False

    @property
    def rest_base(self) -> str:
        return self.API_BASE_URL.rstrip("/")

    @property
    def host_base(self) -> str:
        base = self.rest_base
        return base[: -len("/api")] if base.endswith("/api") else base

    @property
    def ws_url(self) -> str:
        host = self.host_base
        if host.startswith("https://"):
            return "wss://" + host[len("https://") :] + "/ws"
        if host.startswith("http://"):
            return "ws://" + host[len("http://") :] + "/ws"
        return host + "/ws"

    @property
    def sse_url(self) -> str:
        return f"{self.rest_base}/notifications/stream"
