"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from decimal import Decimal
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Literal, Optional


class LedgerConfig(BaseSettings):
    """Bank ledger configuration"""

    model_config = SettingsConfigDict(
        env_prefix="BANK_LEDGER_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090
    api_debug: bool = False
    cors_origins: List[str] = ["*"]

    # Storage configuration
    storage_backend: Literal["memory", "sqlite"] = "memory"
    database_path: str = ":memory:"  # Data lives for the process lifetime
    lock_timeout_seconds: Optional[float] = None  # None waits indefinitely

    # Business rules configuration
    default_page_size: int = 10
    max_page_size: int = 100
    description_min_length: int = 3
    description_max_length: int = 100
    max_transaction_amount: Decimal = Decimal("1000000000.00")

    # Startup
    seed_sample_data: bool = True

    # Logging configuration
    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "json"


# Global configuration instance
config = LedgerConfig()


def get_config() -> LedgerConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> LedgerConfig:
    """Reload configuration from environment"""
    global config
    config = LedgerConfig()
    return config
