# skillswap/routes/chat_route.py

from fastapi import APIRouter, HTTPException, Depends, UploadFile, File, Form, status
from typing import List, Optional
from skillswap.database.connection import get_db
from skillswap.models.chat import (
    ConversationListItem,
    ConversationThread,
    SendMessageRequest,
    SendMessageResponse,
)
from skillswap.models.upload import UploadResponse
from skillswap.models.user import Identity
from skillswap.routes.firebase_auth import get_current_user
from skillswap.services import chat_service
from skillswap.utils.errors import SkillSwapError
from skillswap.utils.storage_handle import (
    UploadTask,
    get_upload_size,
    message_attachment_path,
    registry_key,
    upload_file_to_storage,
)
import logging

logger = logging.getLogger(__name__)

router = APIRouter()

# ==================== Conversation Routes ====================

@router.get("/conversations", response_model=List[ConversationListItem])
async def get_user_conversations(current_user: Identity = Depends(get_current_user), db=Depends(get_db)):
    try:
        return chat_service.list_conversations(db, current_user.uid)
    except SkillSwapError as e:
        raise e.to_http()
    except Exception as e:
        logger.error(f"Error fetching conversations: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/conversations/with/{other_uid}", response_model=ConversationThread)
async def get_conversation_with(
    other_uid: str,
    current_user: Identity = Depends(get_current_user),
    db=Depends(get_db)
):
    """
    Conversation and messages between the caller and another user.
    No conversation is created here, the first message does that.
    """
    try:
        return chat_service.get_thread(db, current_user.uid, other_uid)
    except SkillSwapError as e:
        raise e.to_http()


@router.post("/conversations/{conversation_id}/read")
async def mark_read(
    conversation_id: str,
    current_user: Identity = Depends(get_current_user),
    db=Depends(get_db)
):
    try:
        updated = chat_service.mark_conversation_read(db, conversation_id, current_user.uid)
        return {"conversation_id": conversation_id, "messages_marked_read": updated}
    except SkillSwapError as e:
        raise e.to_http()


@router.post("/conversations/{conversation_id}/attachments", response_model=UploadResponse)
def upload_attachment(
    conversation_id: str,
    file: UploadFile = File(...),
    upload_id: Optional[str] = Form(None),
    current_user: Identity = Depends(get_current_user),
    db=Depends(get_db)
):
    """Upload a file to attach to the next message in this conversation"""
    try:
        chat_service.get_conversation(db, conversation_id, current_user.uid)

        path = message_attachment_path(conversation_id, current_user.uid, file.filename or "")
        url = upload_file_to_storage(
            file,
            path,
            task=UploadTask(),
            upload_id=registry_key(current_user.uid, upload_id) if upload_id else None,
        )
        return UploadResponse(url=url, path=path, content_type=file.content_type, size=get_upload_size(file))
    except SkillSwapError as e:
        raise e.to_http()
    except Exception as e:
        logger.error(f"Error uploading attachment: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


# ==================== Message Routes ====================

@router.post("/messages", response_model=SendMessageResponse, status_code=status.HTTP_201_CREATED)
async def send_message(
    request: SendMessageRequest,
    current_user: Identity = Depends(get_current_user),
    db=Depends(get_db)
):
    try:
        return chat_service.send_message(db, current_user.uid, request)
    except SkillSwapError as e:
        raise e.to_http()
    except Exception as e:
        logger.error(f"Error sending message: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


# ==================== Health Check ====================

@router.get("/health")
async def chat_health_check():
    """Check if chat service is running"""
    return {
        "status": "healthy",
        "service": "chat",
        "message": "Chat service is running"
    }
