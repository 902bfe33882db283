from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
from typing import List
import logging

class Settings(BaseSettings):
    """
    Application-wide settings managed by Pydantic.
    Reads configuration from environment variables and .env files.
    """
    # General project metadata
    PROJECT_NAME: str = "Package Content Gateway"
    API_PREFIX: str = "/api"

    # Logging
    # Root log level for the service (DEBUG shows every parsed package request)
    LOG_LEVEL: str = "INFO"

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """
        Accept any standard logging level name, case-insensitively.
        """
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"LOG_LEVEL must be a logging level name, got: {v}")
        return level

    # Package URL normalization
    # Paths starting with one of these prefixes are not package URLs and
    # bypass normalization (health checks, service API)
    EXEMPT_PATH_PREFIXES: List[str] = ["/api/"]

    @field_validator("EXEMPT_PATH_PREFIXES")
    @classmethod
    def validate_exempt_prefixes(cls, v: List[str]) -> List[str]:
        """
        Prefixes are matched against the request path, so they must be absolute.
        """
        for prefix in v:
            if not prefix.startswith("/"):
                raise ValueError(
                    f"EXEMPT_PATH_PREFIXES entries must start with '/', got: {prefix}"
                )
        return v

    # Pydantic Configuration
    model_config = SettingsConfigDict(
        env_file=".env",              # Load variables from .env file
        env_file_encoding="utf-8",    # Ensure correct encoding
        case_sensitive=True,          # Environment variables are case-sensitive
        extra="ignore"                # Ignore extra fields in .env not defined here
    )

# Instantiate the settings object to be imported elsewhere
settings = Settings()
