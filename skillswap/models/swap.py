from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from datetime import datetime
from enum import Enum
from skillswap.models.document import DocumentModel


class SwapStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"


# field each status bucket is ordered by (newest first)
SWAP_ORDER_FIELDS = {
    SwapStatus.ACTIVE: "startDate",
    SwapStatus.PENDING: "requestDate",
    SwapStatus.COMPLETED: "completionDate",
}


class Swap(DocumentModel):
    participants: List[str]
    proposer_id: Optional[str] = Field(None, alias="proposerId")
    recipient_id: Optional[str] = Field(None, alias="recipientId")
    status: SwapStatus
    skill_offered: str = Field("", alias="skillOffered")
    skill_requested: str = Field("", alias="skillRequested")
    message: str = ""
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")
    request_date: Optional[datetime] = Field(None, alias="requestDate")
    start_date: Optional[datetime] = Field(None, alias="startDate")
    completion_date: Optional[datetime] = Field(None, alias="completionDate")
    rating: Optional[float] = None

    @field_validator("participants")
    @classmethod
    def validate_participants(cls, participants):
        if len(participants) != 2 or participants[0] == participants[1]:
            raise ValueError("A swap needs exactly two distinct participants")
        return participants


class SwapCreate(BaseModel):
    recipient_id: str = Field(..., min_length=1)
    skill_offered: str = Field(..., min_length=1, max_length=200)
    skill_requested: str = Field(..., min_length=1, max_length=200)
    message: str = Field("", max_length=1000)


class SwapBuckets(BaseModel):
    active: List[Swap] = Field(default_factory=list)
    pending: List[Swap] = Field(default_factory=list)
    completed: List[Swap] = Field(default_factory=list)
