from enum import StrEnum

from pydantic_settings import BaseSettings


class AppMode(StrEnum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class Config(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str  # MongoDB URL including the database name, e.g. mongodb://localhost/sessionguard
    jwt_secret: str  # Token signing key, never logged
    jwt_expires_in: int = 3600  # Token lifetime in seconds
    host: str = "0.0.0.0"
    port: int = 3001
    mode: AppMode = AppMode.PRODUCTION
    api_prefix: str = "/api/auth"
    cors_origins: list[str] = []
    # Sessions idle longer than this are removed by the TTL index and the sweep task
    session_idle_timeout: int = 3600
    session_sweep_interval: float = 300  # 0 disables the sweep task
    # Startup connection attempts: one initial try plus this many retries
    db_connect_retries: int = 5
    db_connect_retry_delay: float = 5.0

    model_config = {
        "env_file": [".env"],
        "env_prefix": "SESSIONGUARD_",
        "extra": "ignore",
    }

    @property
    def debug(self) -> bool:
        return self.mode == AppMode.DEVELOPMENT
