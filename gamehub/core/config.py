from typing import Optional

from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    SECRET_KEY: str = "YOUR_SECRET_KEY_HERE"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7

    DATABASE_URL: str = "sqlite:///./gamehub.db"

    GOOGLE_CLIENT_ID: str = "YOUR_GOOGLE_CLIENT_ID_HERE"

    CLIENT_URL: str = "http://localhost:3000"
    EMAIL_FROM: str = "noreply@gamehub.local"
    EMAIL_FROM_NAME: str = "GameHub"
    BREVO_API_KEY: Optional[str] = None
    EMAIL_CODE_EXPIRE_MINUTES: int = 10

    STARTING_COINS: int = 100
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"

settings = Settings()
