from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from voice_recipe.core.errors import MissingCredentialsError


class Settings(BaseSettings):
    environment: str = "dev"
    replicate_api_token: str | None = Field(
        default=None,
        validation_alias=AliasChoices("VR_REPLICATE_API_TOKEN", "REPLICATE_API_TOKEN"),
    )
    replicate_base_url: str = "https://api.replicate.com/v1"
    recipe_model: str = "meta/meta-llama-3-8b-instruct"
    transcription_model_version: str = "84d2ad2d6194fe98a17d2b60bef1c7f910c46b2f6fd38996ca457afd9c8abfcb"
    recipe_language: str | None = None
    poll_interval_seconds: float = 1.0
    max_poll_attempts: int = 30
    request_timeout_seconds: float = 10.0
    max_tokens: int = 1000
    temperature: float = 0.1
    top_p: float = 0.95
    top_k: int = 0
    length_penalty: float = 1.0
    presence_penalty: float = 0.0
    otel_enabled: bool = False
    otel_service_name: str = "voice-recipe"
    otel_exporter_otlp_endpoint: str | None = Field(
        default=None,
        validation_alias=AliasChoices("VR_OTEL_EXPORTER_OTLP_ENDPOINT", "OTEL_EXPORTER_OTLP_ENDPOINT"),
    )
    otel_exporter_otlp_headers: str | None = Field(
        default=None,
        validation_alias=AliasChoices("VR_OTEL_EXPORTER_OTLP_HEADERS", "OTEL_EXPORTER_OTLP_HEADERS"),
    )
    otel_trace_sample_ratio: float = 1.0
    otel_log_correlation: bool = True

    model_config = SettingsConfigDict(env_prefix="VR_", env_file=".env", extra="ignore", populate_by_name=True)


@lru_cache
def get_settings() -> Settings:
    return Settings()


def require_api_token(settings: Settings) -> str:
    token = (settings.replicate_api_token or "").strip()
    if not token:
        raise MissingCredentialsError("no REPLICATE_API_TOKEN found; set it in the environment or in a .env file")
    return token
