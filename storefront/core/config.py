"""
Application configuration management using Pydantic Settings
Handles all environment variables and application settings
"""

from pydantic_settings import BaseSettings
from typing import Optional, List
from functools import lru_cache

class Settings(BaseSettings):
    """Main application settings"""

    # Application Settings
    APP_NAME: str = "Storefront API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Server Settings
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    WORKERS: int = 4

    # Database Configuration
    DATABASE_URL: str
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 40
    DATABASE_POOL_TIMEOUT: int = 30
    DATABASE_ECHO: bool = False

    # Security Settings
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # CORS Configuration
    FRONTEND_URL: str = "http://localhost:3000"
    ALLOWED_HOSTS: List[str] = ["localhost", "127.0.0.1"]
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    # Email Configuration
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_FROM_EMAIL: Optional[str] = None
    SMTP_FROM_NAME: str = "Storefront"
    STORE_URL: str = "http://localhost:3000"

    # Celery Configuration
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/0"
    CELERY_TIMEZONE: str = "UTC"

    # Cart and order rules
    MAX_CART_LINE_QUANTITY: int = 10
    DEFAULT_PRODUCT_SIZES: List[str] = ["S", "M", "L", "XL", "XXL"]
    NO_SIZE_SENTINEL: str = "default"
    ORDER_NUMBER_PREFIX: str = "ORD"
    ORDER_NUMBER_WIDTH: int = 6
    UNKNOWN_CUSTOMER_NAME: str = "Unknown User"
    UNSPECIFIED_FIELD_VALUE: str = "Not specified"
    PENDING_ORDER_TTL_DAYS: int = 30

    # Revenue reporting
    REVENUE_DAILY_LIMIT: int = 30
    REVENUE_MONTHLY_LIMIT: int = 12

    # Pagination
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def database_url_async(self) -> str:
        """Convert sync database URL to async"""
        if self.DATABASE_URL.startswith("postgresql://"):
            return self.DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://")
        elif self.DATABASE_URL.startswith("sqlite://"):
            return self.DATABASE_URL.replace("sqlite://", "sqlite+aiosqlite://")
        return self.DATABASE_URL

    @property
    def email_enabled(self) -> bool:
        """Email is only sent when SMTP credentials are present"""
        return bool(self.SMTP_USER and self.SMTP_PASSWORD)

@lru_cache()
def get_settings() -> Settings:
    """
    Create cached settings instance
    This ensures settings are loaded only once
    """
    return Settings()

# Global settings instance
settings = get_settings()
