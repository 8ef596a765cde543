from pydantic_settings import BaseSettings
from typing import List, Optional

class Settings(BaseSettings):
    FIREBASE_KEY_PATH: Optional[str] = None
    FIREBASE_JSON: Optional[str] = None
    FIREBASE_STORAGE_BUCKET: str = ""
    FIREBASE_API_KEY: str = ""
    IDENTITY_TOOLKIT_URL: str = "https://identitytoolkit.googleapis.com/v1"

    # uploads
    UPLOAD_MAX_SIZE_MB: int = 5
    UPLOAD_ALLOWED_TYPES: List[str] = ["image/jpeg", "image/png", "image/gif", "application/pdf"]
    PROFILE_IMAGE_ALLOWED_TYPES: List[str] = ["image/jpeg", "image/png", "image/gif"]
    UPLOAD_CHUNK_SIZE: int = 256 * 1024 * 4   # must stay a multiple of 256 KB
    UPLOAD_REGISTRY_TTL_SECONDS: int = 300     # how long finished uploads stay pollable
    UPLOAD_REGISTRY_MAX_ENTRIES: int = 1000

    BROWSE_USER_LIMIT: int = 50

    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = "app.log"

    HOST: str = "0.0.0.0"
    PORT: int = 9090
    CORS_ORIGINS: List[str] = ["*"]

    class Config:
        env_file = ".env"

settings = Settings()
