"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class TrackerConfig(BaseSettings):
    """Site logistics tracker configuration"""
    
    # Storage configuration
    storage_backend: str = "sqlite"  # sqlite or memory
    database_path: str = "logistics_tracker.db"
    
    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8095
    api_reload: bool = False
    
    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout
    
    # Inventory rules
    low_stock_threshold: int = 5
    allow_negative_stock: bool = False
    default_expected_return_days: int = 7
    
    # Dashboard configuration
    recent_waybill_count: int = 5
    recent_checkout_count: int = 3
    recent_activity_limit: int = 8
    
    # Feature flags
    enable_audit_logging: bool = True
    
    class Config:
        env_prefix = "TRACKER_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = TrackerConfig()


def get_config() -> TrackerConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> TrackerConfig:
    """Reload configuration from environment"""
    global config
    config = TrackerConfig()
    return config
