from functools import lru_cache

from pydantic import BaseModel, ConfigDict

from app.shared.config import EnvironConfig, config


class ProviderConfig(BaseModel):
    """Connection settings for the streaming provider.

    Built once at process start and handed to the ProviderGateway constructor.
    """

    model_config = ConfigDict(frozen=True)

    demo_mode: bool = True
    api_base_url: str = "https://api.provider.invalid"
    api_key: str | None = None
    ingest_base_url: str = "rtmp://ingest.provider.invalid/live"
    playback_base_url: str = "https://playback.provider.invalid/hls"
    timeout_seconds: float = 10.0
    max_retries: int = 2
    retry_base_delay: float = 0.5
    status_cache_ttl_seconds: float = 15.0


class AppEnvironConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    # Public demo switch: when enabled, external integrations use stubs and avoid network calls.
    DEMO_MODE: bool = True
    DEBUG: bool = False

    API_BASE_URL: str = "http://localhost:8000"

    # Streaming provider
    PROVIDER_API_BASE_URL: str = "https://api.provider.invalid"
    PROVIDER_API_KEY: str | None = None
    PROVIDER_INGEST_BASE_URL: str = "rtmp://ingest.provider.invalid/live"
    PROVIDER_PLAYBACK_BASE_URL: str = "https://playback.provider.invalid/hls"
    PROVIDER_TIMEOUT_SECONDS: float = 10.0
    PROVIDER_MAX_RETRIES: int = 2
    PROVIDER_RETRY_BASE_DELAY: float = 0.5
    PROVIDER_STATUS_CACHE_TTL_SECONDS: float = 15.0
    PROVIDER_WEBHOOK_SIGNING_SECRET: str | None = None

    # Recording policy
    MIN_RECORDING_DURATION_SECONDS: int = 60
    MAX_RECORDING_DURATION_HOURS: int = 4
    HEURISTIC_MATCH_WINDOW: int = 10

    @classmethod
    def from_environ(cls, env: EnvironConfig) -> "AppEnvironConfig":
        def _str(key: str, default: str | None = None) -> str | None:
            return (env.get(key) or "").strip() or default

        return cls(
            DEMO_MODE=env.get_bool("DEMO_MODE", True),
            DEBUG=env.get_bool("DEBUG", False),
            API_BASE_URL=_str("API_BASE_URL", "http://localhost:8000"),  # type: ignore[arg-type]
            PROVIDER_API_BASE_URL=_str("PROVIDER_API_BASE_URL", cls.model_fields["PROVIDER_API_BASE_URL"].default),  # type: ignore[arg-type]
            PROVIDER_API_KEY=_str("PROVIDER_API_KEY"),
            PROVIDER_INGEST_BASE_URL=_str("PROVIDER_INGEST_BASE_URL", cls.model_fields["PROVIDER_INGEST_BASE_URL"].default),  # type: ignore[arg-type]
            PROVIDER_PLAYBACK_BASE_URL=_str("PROVIDER_PLAYBACK_BASE_URL", cls.model_fields["PROVIDER_PLAYBACK_BASE_URL"].default),  # type: ignore[arg-type]
            PROVIDER_TIMEOUT_SECONDS=env.get_float("PROVIDER_TIMEOUT_SECONDS", 10.0),
            PROVIDER_MAX_RETRIES=env.get_int("PROVIDER_MAX_RETRIES", 2),
            PROVIDER_RETRY_BASE_DELAY=env.get_float("PROVIDER_RETRY_BASE_DELAY", 0.5),
            PROVIDER_STATUS_CACHE_TTL_SECONDS=env.get_float("PROVIDER_STATUS_CACHE_TTL_SECONDS", 15.0),
            PROVIDER_WEBHOOK_SIGNING_SECRET=_str("PROVIDER_WEBHOOK_SIGNING_SECRET"),
            MIN_RECORDING_DURATION_SECONDS=env.get_int("MIN_RECORDING_DURATION_SECONDS", 60),
            MAX_RECORDING_DURATION_HOURS=env.get_int("MAX_RECORDING_DURATION_HOURS", 4),
            HEURISTIC_MATCH_WINDOW=env.get_int("HEURISTIC_MATCH_WINDOW", 10),
        )

    def provider_config(self) -> ProviderConfig:
        return ProviderConfig(
            demo_mode=self.DEMO_MODE,
            api_base_url=self.PROVIDER_API_BASE_URL.rstrip("/"),
            api_key=self.PROVIDER_API_KEY,
            ingest_base_url=self.PROVIDER_INGEST_BASE_URL.rstrip("/"),
            playback_base_url=self.PROVIDER_PLAYBACK_BASE_URL.rstrip("/"),
            timeout_seconds=self.PROVIDER_TIMEOUT_SECONDS,
            max_retries=max(0, self.PROVIDER_MAX_RETRIES),
            retry_base_delay=self.PROVIDER_RETRY_BASE_DELAY,
            status_cache_ttl_seconds=self.PROVIDER_STATUS_CACHE_TTL_SECONDS,
        )


@lru_cache(maxsize=1)
def get_app_environ_config() -> AppEnvironConfig:
    return AppEnvironConfig.from_environ(config)
