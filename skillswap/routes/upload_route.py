from fastapi import APIRouter, HTTPException, Depends
from skillswap.models.upload import UploadProgress
from skillswap.models.user import Identity
from skillswap.routes.firebase_auth import get_current_user
from skillswap.utils.storage_handle import registry_key, upload_registry
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/{upload_id}", response_model=UploadProgress)
async def get_upload_progress(upload_id: str, current_user: Identity = Depends(get_current_user)):
    progress = upload_registry.progress(registry_key(current_user.uid, upload_id))
    if progress is None:
        raise HTTPException(status_code=404, detail="Upload not found")
    return progress.model_copy(update={"upload_id": upload_id})


@router.delete("/{upload_id}")
async def cancel_upload(upload_id: str, current_user: Identity = Depends(get_current_user)):
    task = upload_registry.get(registry_key(current_user.uid, upload_id))
    if task is None:
        raise HTTPException(status_code=404, detail="Upload not found")

    if not task.cancel():
        raise HTTPException(status_code=409, detail="Upload is not in progress")

    logger.info(f"Cancel requested for upload {upload_id} by UID: {current_user.uid}")
    return {"message": "Upload cancellation requested", "upload_id": upload_id}
