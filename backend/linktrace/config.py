from pydantic_settings import BaseSettings
from functools import lru_cache
from pathlib import Path


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "linktrace"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    BASE_URL: str = "http://localhost:8000"

    # Database
    DEV_MODE: bool = True
    DATABASE_URL: str = ""
    MYSQL_HOST: str = "localhost"
    MYSQL_PORT: int = 3306
    MYSQL_USER: str = "linktrace"
    MYSQL_PASSWORD: str = "your_secure_password"
    MYSQL_DATABASE: str = "linktrace"

    # Redis (resolver cache)
    REDIS_ENABLED: bool = True
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str = ""
    LINK_CACHE_TTL: int = 86400

    # Link Settings
    CODE_LENGTH: int = 8
    CODE_MAX_ATTEMPTS: int = 10

    # Geolocation
    GEOIP_ENABLED: bool = True
    GEOIP_BASE_URL: str = "https://ipinfo.io"
    GEOIP_TOKEN: str = ""
    GEOIP_TIMEOUT: float = 3.0

    # Tracking
    FINGERPRINT_MAX_BYTES: int = 65536

    # Dashboard API; empty token disables it
    ADMIN_TOKEN: str = ""

    CORS_ORIGINS: list[str] = ["*"]

    # Paths that must never be served or generated as short codes
    RESERVED_CODES: list[str] = [
        "dashboard", "login", "create", "logout", "health",
        "track-fingerprint", "api", "favicon.ico", "robots.txt"
    ]

    class Config:
        # Resolve backend/.env relative to this file so settings load correctly
        env_file = str(Path(__file__).resolve().parents[1] / ".env")
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
