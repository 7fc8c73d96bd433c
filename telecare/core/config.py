from pydantic_settings import BaseSettings
from typing import Optional

class Settings(BaseSettings):
    PROJECT_NAME: str = "TeleCare"
    API_V1_STR: str = "/api/v1"
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "password"
    POSTGRES_DB: str = "telecare"
    DATABASE_URL: Optional[str] = None
    LOG_LEVEL: str = "INFO"

    # Backend-level timeouts, a storage call never blocks a sweep indefinitely
    DB_CONNECT_TIMEOUT_SECONDS: float = 5.0
    DB_POOL_TIMEOUT_SECONDS: float = 10.0

    SCHEDULER_ENABLED: bool = True
    MISSED_APPOINTMENT_CHECK_INTERVAL_MINUTES: float = 30

    FALLBACK_SEED_DEMO_PROFILES: bool = True

    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"

    class Config:
        case_sensitive = True
        env_file = ".env"

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        if not self.DATABASE_URL:
            self.DATABASE_URL = f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}/{self.POSTGRES_DB}"

settings = Settings()
