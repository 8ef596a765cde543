from fastapi import APIRouter, HTTPException, Depends, UploadFile, File, Form, Query
from typing import List, Optional
from skillswap.config.settings import settings
from skillswap.database.connection import get_db
from skillswap.models.upload import UploadResponse
from skillswap.models.user import (
    SKILL_CATEGORIES,
    Identity,
    OnboardingRequest,
    ProfileUpdate,
    UserProfile,
    UserSettings,
)
from skillswap.routes.firebase_auth import get_current_user
from skillswap.services import profile_service
from skillswap.utils.errors import SkillSwapError
from skillswap.utils.skill_filters import ALL_CATEGORIES, SkillType, SortOption, public_view
from skillswap.utils.storage_handle import (
    UploadTask,
    delete_file_from_storage,
    get_upload_size,
    path_from_public_url,
    profile_image_path,
    registry_key,
    upload_file_to_storage,
    verify_image,
)
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/me", response_model=UserProfile)
async def get_my_profile(current_user: Identity = Depends(get_current_user), db=Depends(get_db)):
    try:
        return profile_service.get_profile(db, current_user.uid)
    except SkillSwapError as e:
        raise e.to_http()


@router.put("/me", response_model=UserProfile)
async def update_my_profile(
    update: ProfileUpdate,
    current_user: Identity = Depends(get_current_user),
    db=Depends(get_db)
):
    try:
        return profile_service.update_profile(db, current_user.uid, update.to_fields())
    except SkillSwapError as e:
        raise e.to_http()
    except Exception as e:
        logger.error(f"Error updating profile for UID {current_user.uid}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/onboarding", response_model=UserProfile)
async def complete_onboarding(
    request: OnboardingRequest,
    current_user: Identity = Depends(get_current_user),
    db=Depends(get_db)
):
    try:
        return profile_service.complete_onboarding(db, current_user.uid, request)
    except SkillSwapError as e:
        raise e.to_http()


@router.put("/settings", response_model=UserProfile)
async def update_settings(
    user_settings: UserSettings,
    current_user: Identity = Depends(get_current_user),
    db=Depends(get_db)
):
    try:
        return profile_service.update_settings(db, current_user.uid, user_settings)
    except SkillSwapError as e:
        raise e.to_http()


@router.post("/photo", response_model=UploadResponse)
def upload_profile_photo(
    file: UploadFile = File(...),
    upload_id: Optional[str] = Form(None),
    current_user: Identity = Depends(get_current_user),
    db=Depends(get_db)
):
    """Upload a new profile image and point photoURL at it"""
    uid = current_user.uid
    try:
        previous_url = profile_service.get_profile(db, uid).photo_url

        task = UploadTask(allowed_types=settings.PROFILE_IMAGE_ALLOWED_TYPES)
        size = get_upload_size(file)
        task.validate(file.content_type, size)
        verify_image(file)

        path = profile_image_path(uid, file.filename or "")
        url = upload_file_to_storage(
            file,
            path,
            task=task,
            upload_id=registry_key(uid, upload_id) if upload_id else None,
        )
        profile_service.set_photo_url(db, uid, url)

        bucket_prefix = f"https://storage.googleapis.com/{settings.FIREBASE_STORAGE_BUCKET}/"
        if previous_url and previous_url.startswith(bucket_prefix):
            try:
                delete_file_from_storage(path_from_public_url(previous_url))
            except Exception as e:
                # the new photo is already live, a stale blob is left behind
                logger.warning(f"Could not delete previous photo for UID {uid}: {str(e)}")

        return UploadResponse(url=url, path=path, content_type=file.content_type, size=size)
    except SkillSwapError as e:
        raise e.to_http()
    except Exception as e:
        logger.error(f"Error uploading profile photo for UID {uid}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/categories", response_model=List[str])
async def list_skill_categories():
    return SKILL_CATEGORIES


@router.get("/browse", response_model=List[UserProfile])
async def browse_profiles(
    search: str = Query("", max_length=100),
    category: str = Query(ALL_CATEGORIES),
    skill_type: SkillType = Query("offered"),
    sort_by: SortOption = Query("newest"),
    current_user: Identity = Depends(get_current_user),
    db=Depends(get_db)
):
    """Other users, filtered by skill text and category"""
    try:
        return profile_service.browse_profiles(
            db,
            current_user.uid,
            limit=settings.BROWSE_USER_LIMIT,
            search=search,
            category=category,
            skill_type=skill_type,
            sort_by=sort_by,
        )
    except SkillSwapError as e:
        raise e.to_http()


@router.get("/{uid}", response_model=UserProfile)
async def get_profile(uid: str, current_user: Identity = Depends(get_current_user), db=Depends(get_db)):
    try:
        profile = profile_service.get_profile(db, uid)
        return profile if uid == current_user.uid else public_view(profile)
    except SkillSwapError as e:
        raise e.to_http()
