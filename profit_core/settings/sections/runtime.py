from pydantic_settings import BaseSettings
from pydantic import Field


class RuntimeSettings(BaseSettings):
    """Process-level settings."""

    environment: str = Field(default="development", alias="APP_ENV")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "populate_by_name": True,
    }
