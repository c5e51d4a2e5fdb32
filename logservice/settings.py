import os

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

load_dotenv()


class Settings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Server Configuration
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8080, alias="PORT")
    app_version: str = Field(default="v1", alias="APP_VERSION")

    # Logging Configuration
    log_level: str = Field(default="info", alias="LOG_LEVEL")
    log_json: bool = Field(default=True, alias="LOG_JSON")

    # Dependency Configuration
    dependency_url: str = Field(
        default="http://echo-service:8080/info", alias="DEPENDENCY_URL"
    )
    dependency_method: str = Field(default="GET", alias="DEPENDENCY_METHOD")
    correlation_header: str = Field(default="X-Request-ID", alias="CORRELATION_HEADER")

    # Resilience Configuration (durations in seconds)
    max_attempts: int = Field(default=3, alias="MAX_ATTEMPTS")
    per_attempt_timeout: float = Field(default=1.0, alias="PER_ATTEMPT_TIMEOUT")
    backoff_base: float = Field(default=0.1, alias="BACKOFF_BASE")
    jitter_ceiling: float = Field(default=0.05, alias="JITTER_CEILING")


def load_settings() -> Settings:
    """Build settings from the process environment (and .env)."""
    return Settings.model_validate(dict(os.environ))


global_settings = load_settings()
