"""
Configuration settings for the Ledger Console Backend.

This module handles application configuration using Pydantic settings.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # Application
    app_name: str = "Ledger Console Backend"
    api_version: str = "v1"
    debug: bool = True
    log_level: str = "INFO"
    currency_symbol: str = "₹"

    # Remote Services
    ledger_service_url: str = "http://localhost:3000/api"
    catalog_service_url: str = "http://localhost:3000/api"
    remote_timeout_seconds: float = 10.0
    circuit_failure_threshold: int = 5
    circuit_reset_timeout: int = 30

    # Audit Database Configuration
    database_url: str = "sqlite+aiosqlite:///./ledger_console.db"
    db_echo: bool = False

    # Redis Configuration
    redis_url: str = "redis://localhost:6379/0"
    redis_decode_responses: bool = True
    ledger_cache_ttl_seconds: int = 60
    cache_enabled: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
