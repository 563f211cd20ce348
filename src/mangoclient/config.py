"""Configuration management for the Mango client.

Loads connection and retry settings from environment variables (prefixed
with ``MANGO_``) or a .env file using Pydantic. Nothing is required, so a
bare environment connects to http://localhost:8080.

Usage:
    from mangoclient.config import get_settings

    settings = get_settings()
    print(settings.base_url)
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_PORTS = {"http": 8080, "https": 8443}


class Settings(BaseSettings):
    """Mango client configuration from environment variables.

    Attributes:
        host: Server host name
        port: Server port (default: 8080 for http, 8443 for https)
        protocol: 'http' or 'https'
        reject_unauthorized: Verify TLS certificates
        enable_cookies: Keep a session cookie jar (needed for XSRF protection)
        username: Login user name for the CLI
        password: Login password for the CLI
        timeout: Connection-level timeout (seconds)
        retries: Default retry count for CLI requests
        retry_delay: Fixed delay between retries (seconds)
        log_level: Logging verbosity (DEBUG, INFO, WARNING, ERROR)
    """

    model_config = SettingsConfigDict(
        env_prefix="MANGO_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Connection
    host: str = Field(default="localhost", min_length=1, description="Server host")
    port: int | None = Field(default=None, ge=1, le=65535, description="Server port")
    protocol: str = Field(default="http", description="'http' or 'https'")
    reject_unauthorized: bool = Field(default=True, description="Verify TLS certificates")
    enable_cookies: bool = Field(default=True, description="Keep a session cookie jar")
    timeout: float = Field(default=30.0, gt=0, description="Connection timeout (seconds)")

    # Credentials (optional)
    username: str | None = Field(default=None, description="Login user name")
    password: str | None = Field(default=None, description="Login password")

    # Retries
    retries: int = Field(default=0, ge=0, description="Retry count for failed requests")
    retry_delay: float = Field(default=5.0, ge=0, description="Delay between retries (seconds)")

    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("protocol")
    @classmethod
    def validate_protocol(cls, v: str) -> str:
        """Ensure protocol is http or https."""
        v_lower = v.lower()
        if v_lower not in DEFAULT_PORTS:
            raise ValueError(f"protocol must be 'http' or 'https', got '{v}'")
        return v_lower

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid:
            raise ValueError(f"log_level must be one of {valid}, got {v}")
        return v_upper

    @property
    def resolved_port(self) -> int:
        return self.port or DEFAULT_PORTS[self.protocol]

    @property
    def base_url(self) -> str:
        return f"{self.protocol}://{self.host}:{self.resolved_port}"


@lru_cache()
def get_settings() -> Settings:
    """Return a cached Settings instance, loaded on first use."""
    return Settings()
