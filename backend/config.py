# backend/config.py
from pydantic_settings import BaseSettings
from typing import ClassVar, Optional
from pathlib import Path
from dotenv import load_dotenv

# Resolve absolute path to the .env file for reliable loading
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(env_path)

class Settings(BaseSettings):
    SECRET_KEY: str = "dev-secret-change-me"
    ALGORITHM: str = "HS256"
    # Tokens stay valid for 7 days
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7
    DATABASE_URL: str = "sqlite:///./inventory.db"

    # Image storage
    UPLOAD_DIR: str = "static/uploads"
    MAX_UPLOAD_BYTES: int = 5 * 1024 * 1024
    MAX_PRODUCT_IMAGES: int = 5

    # Number format applied to currency columns in spreadsheet exports
    CURRENCY_FORMAT: str = '"₺"#,##0.00'

    LOG_LEVEL: str = "INFO"
    FRONTEND_URL: Optional[str] = None

    # When enabled, /auth/register honours the requested role
    ALLOW_ADMIN_REGISTRATION: bool = False

    class Config:
        env_file: ClassVar[str] = str(env_path)
        extra: ClassVar[str] = "ignore"

settings = Settings()
