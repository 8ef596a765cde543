# skillswap/models/chat.py

from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Dict, List, Optional
from datetime import datetime
from skillswap.models.document import DocumentModel
from skillswap.models.user import UserProfile


class Conversation(DocumentModel):
    participants: List[str]
    last_message: str = Field("", alias="lastMessage")
    last_message_at: Optional[datetime] = Field(None, alias="lastMessageAt")
    last_sender: Optional[str] = Field(None, alias="lastSender")
    unread_count: Dict[str, int] = Field(default_factory=dict, alias="unreadCount")
    created_at: Optional[datetime] = Field(None, alias="createdAt")

    @model_validator(mode="before")
    @classmethod
    def normalize_unread_count(cls, data):
        # Older conversations store a single counter owed to the non-sender
        if isinstance(data, dict) and isinstance(data.get("unreadCount"), int):
            count = data["unreadCount"]
            sender = data.get("lastSender")
            owed = [pid for pid in data.get("participants") or [] if pid != sender]
            data = {**data, "unreadCount": {owed[0]: count} if owed and count else {}}
        return data

    @field_validator("participants")
    @classmethod
    def validate_participants(cls, participants):
        if len(participants) != 2:
            raise ValueError("A conversation needs exactly two participants")
        return participants

    def other_participant(self, uid: str) -> Optional[str]:
        for pid in self.participants:
            if pid != uid:
                return pid
        return None

    def unread_for(self, uid: str) -> int:
        return self.unread_count.get(uid, 0)


class Message(DocumentModel):
    sender_id: str = Field(..., alias="senderId")
    text: str = ""
    timestamp: Optional[datetime] = None
    attachments: List[str] = Field(default_factory=list)
    read: bool = False


# ****************************************************
#  Request / response models
# ****************************************************

class SendMessageRequest(BaseModel):
    recipient_id: str = Field(..., min_length=1)
    text: str = Field("", max_length=5000)
    attachments: List[str] = Field(default_factory=list)
    # retried sends with the same key write the same message document
    client_message_id: Optional[str] = Field(None, min_length=1, max_length=128, pattern=r"^[A-Za-z0-9_-]+$")


class SendMessageResponse(BaseModel):
    conversation_id: str
    message_id: str
    created_conversation: bool


class ConversationListItem(BaseModel):
    conversation_id: str
    other_user_id: str
    other_user_name: str
    other_user_photo: Optional[str] = None
    last_message: str
    last_message_time: Optional[datetime] = None
    unread_count: int
    is_last_message_mine: bool


class ConversationThread(BaseModel):
    conversation: Optional[Conversation] = None
    other_user: Optional[UserProfile] = None
    messages: List[Message] = Field(default_factory=list)
