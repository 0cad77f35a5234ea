from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    DATABASE_URL: str
    REDIS_URL: str

    # Signing secrets are checked on first use, not at import
    JWT_SECRET: Optional[str] = None
    REFRESH_TOKEN_SECRET: Optional[str] = None
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    INVITATION_EXPIRE_DAYS: int = 30

    # Must be exactly 32 bytes
    APP_ENCRYPTION_KEY: Optional[str] = None

    class Config:
        env_file = [".env"]
        case_sensitive = True

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"


settings = Settings()
