"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from decimal import Decimal

from pydantic_settings import BaseSettings
from typing import Optional


class FlatstoreConfig(BaseSettings):
    """Flatstore configuration"""

    # Storage files
    accounts_path: str = "accounts.bin"
    books_path: str = "books.bin"

    # Business rules configuration
    minimum_deposit: Decimal = Decimal("50")
    minimum_withdrawal: Decimal = Decimal("10")

    # Display configuration
    display_currency: str = "USD"

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stderr

    class Config:
        env_prefix = "FLATSTORE_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = FlatstoreConfig()


def get_config() -> FlatstoreConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> FlatstoreConfig:
    """Reload configuration from environment"""
    global config
    config = FlatstoreConfig()
    return config
