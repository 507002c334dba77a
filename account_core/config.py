"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class AccountCoreConfig(BaseSettings):
    """Account core configuration"""

    # Storage configuration
    database_url: str = ":memory:"  # SQLite path, ":memory:" keeps nothing on disk
    persist_on_change: bool = True

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout

    # Business rules configuration (Decimal values as strings)
    currency: str = "USD"
    overdraft_fee: str = "35.00"
    default_overdraft_limit: str = "500.00"
    default_savings_rate: str = "0.02"
    default_interest_rate: str = "0.05"  # Shared rate for checking accounts

    # Interest batch configuration
    interest_batch_enabled: bool = False
    interest_batch_interval_seconds: float = 10.0

    # Feature flags
    enable_audit_logging: bool = True

    model_config = SettingsConfigDict(
        env_prefix="ACCOUNT_CORE_",
        env_file=".env",
        case_sensitive=False
    )


# Global configuration instance
config = AccountCoreConfig()


def get_config() -> AccountCoreConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> AccountCoreConfig:
    """Reload configuration from environment"""
    global config
    config = AccountCoreConfig()
    return config
