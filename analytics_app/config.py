from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    
    Loading priority (highest to lowest):
    1. Environment variables
    2. .env file
    3. Default values below
    """
    
    # Environment
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"
    
    # Application
    app_name: str = "Portfolio Analytics"
    app_version: str = "1.0.0"
    cors_origins: List[str] = ["http://localhost:3000", "http://localhost:3004"]
    
    # Database
    database_url: str = "sqlite:///./analytics.db"
    
    # Visit admission (dedup) settings
    admission_backend: str = "redis"  # Options: "redis", "memory", "null"
    redis_url: str = "redis://localhost:6379/0"
    dedup_window_seconds: int = 3600  # Same IP + path counted once per hour
    
    # Reports
    default_period: str = "last_30_days"
    top_pages_limit: int = 10
    
    # Realtime
    realtime_enabled: bool = True  # False: accepted visits are not pushed to websocket clients
    
    # Auth (token validation only, tokens are issued elsewhere)
    jwt_secret_key: str = "dev-secret-key"
    jwt_algorithm: str = "HS256"
    access_token_cookie: str = "access_token"
    
    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


# Create settings instance
settings = Settings()
