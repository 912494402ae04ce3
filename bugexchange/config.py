"""
Bug Exchange - Configuration
"""
from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # Application
    APP_NAME: str = "Bug Exchange"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    APP_URL: str = "http://localhost:3000"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/bugexchange.db"

    # Paths
    BASE_DIR: Path = Path(__file__).parent.parent
    DATA_DIR: Path = BASE_DIR / "data"

    # Lifecycle policy
    TRUSTED_REVIEWER_THRESHOLD: int = 100  # reputation needed to change any bug's status

    # Reputation economy
    REPUTATION_UNIT: int = 100  # bounty currency units per reputation point
    MIN_BOUNTY: int = 100

    # Duplicate detection
    DUPLICATE_CANDIDATE_LIMIT: int = 10
    DUPLICATE_SCORE_THRESHOLD: int = 20

    # Notifications
    NOTIFY_WEBHOOK_URL: Optional[str] = None
    NOTIFY_TIMEOUT_SECONDS: float = 5.0

    # CORS
    CORS_ORIGINS: list = ["http://localhost:3000", "http://127.0.0.1:3000"]

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()

# Ensure directories exist
settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
