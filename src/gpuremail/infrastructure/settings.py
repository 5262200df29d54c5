"""Application settings using Pydantic Settings for configuration management."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # Application
    app_name: str = "GPureMail Gateway"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    # API Server
    api_host: str = "0.0.0.0"
    api_port: int = 8080
    api_prefix: str = ""
    cors_allow_origins: list[str] = Field(default_factory=lambda: ["*"])

    # IMAP (mail store)
    imap_host: str = "imap.purelymail.com"
    imap_port: int = 993
    imap_verify_tls: bool = True

    # SMTP (outbound)
    smtp_host: str = "smtp.purelymail.com"
    smtp_port: int = 587
    smtp_security: Literal["ssl", "starttls", "none"] = "starttls"
    smtp_verify_tls: bool = True
    mailer_name: str = "GPureMail"

    # Timeouts (seconds)
    connect_timeout: float = 15.0
    list_timeout: float = 30.0
    fetch_timeout: float = 15.0
    mutation_timeout: float = 15.0
    smtp_timeout: float = 30.0

    # Listing
    preview_length: int = 100
    preview_fetch_bytes: int = 2048
    default_page_size: int = 25
    max_page_size: int = 100
    trash_folder: str = "Trash"

    # Credentials arrive either as-is or base64 encoded by the client
    credential_encoding: Literal["plain", "base64"] = "plain"

    @computed_field
    @property
    def imap_endpoint(self) -> str:
        """host:port of the IMAP server, for logging."""
        return f"{self.imap_host}:{self.imap_port}"

    @computed_field
    @property
    def smtp_endpoint(self) -> str:
        """host:port of the SMTP server, for logging."""
        return f"{self.smtp_host}:{self.smtp_port}"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
