from pydantic import BaseModel
from typing import Optional
from enum import Enum


class UploadStatus(str, Enum):
    IDLE = "idle"
    UPLOADING = "uploading"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class UploadResponse(BaseModel):
    url: str
    path: str
    content_type: str
    size: int
    progress: int = 100


class UploadProgress(BaseModel):
    upload_id: str
    status: UploadStatus
    progress: int
    url: Optional[str] = None
    error: Optional[str] = None

    class Config:
        use_enum_values = True
