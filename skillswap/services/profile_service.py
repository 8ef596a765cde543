from google.api_core.exceptions import GoogleAPICallError, NotFound
from datetime import datetime, timezone
from typing import List
from skillswap.database.connection import USERS
from skillswap.models.document import parse_documents
from skillswap.models.user import OnboardingRequest, UserProfile, UserSettings
from skillswap.utils.errors import InvalidRequestError, NotFoundError, ReadError, WriteError
from skillswap.utils.skill_filters import ALL_CATEGORIES, SkillType, SortOption, browse_users
import logging

logger = logging.getLogger(__name__)

# fields a profile update may touch (Firestore names)
PROFILE_FIELDS = {
    "displayName",
    "bio",
    "location",
    "availability",
    "skillsOffered",
    "skillsWanted",
    "photoURL",
    "onboardingCompleted",
    "settings",
}


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def get_profile(db, uid: str) -> UserProfile:
    try:
        snapshot = db.collection(USERS).document(uid).get()
    except GoogleAPICallError as e:
        logger.error(f"Error reading profile {uid}: {str(e)}")
        raise ReadError(f"Error reading profile: {str(e)}") from e

    profile = UserProfile.from_snapshot(snapshot)
    if profile is None:
        raise NotFoundError("User not found")
    return profile


def update_profile(db, uid: str, fields: dict) -> UserProfile:
    """
    Partial update of a profile document.
    Always stamps `updatedAt`; returns the profile as stored afterwards.
    """
    if not fields:
        raise InvalidRequestError("No profile fields to update")

    unknown = set(fields) - PROFILE_FIELDS
    if unknown:
        raise InvalidRequestError(f"Unknown profile fields: {', '.join(sorted(unknown))}")

    try:
        db.collection(USERS).document(uid).update({**fields, "updatedAt": now_iso()})
    except NotFound as e:
        raise NotFoundError("User not found") from e
    except GoogleAPICallError as e:
        logger.error(f"Error updating profile {uid}: {str(e)}")
        raise WriteError(f"Error updating profile: {str(e)}") from e

    logger.info(f"Profile updated for UID: {uid} fields: {sorted(fields)}")
    return get_profile(db, uid)


def complete_onboarding(db, uid: str, request: OnboardingRequest) -> UserProfile:
    fields = request.model_dump(by_alias=True)
    fields["onboardingCompleted"] = True
    return update_profile(db, uid, fields)


def update_settings(db, uid: str, user_settings: UserSettings) -> UserProfile:
    return update_profile(db, uid, {"settings": user_settings.model_dump(by_alias=True)})


def set_photo_url(db, uid: str, url: str) -> UserProfile:
    return update_profile(db, uid, {"photoURL": url})


def list_profiles(db, limit: int) -> List[UserProfile]:
    try:
        snapshots = db.collection(USERS).limit(limit).stream()
        return parse_documents(UserProfile, snapshots)
    except GoogleAPICallError as e:
        logger.error(f"Error fetching users: {str(e)}")
        raise ReadError(f"Error fetching users: {str(e)}") from e


def browse_profiles(
    db,
    uid: str,
    limit: int,
    search: str = "",
    category: str = ALL_CATEGORIES,
    skill_type: SkillType = "offered",
    sort_by: SortOption = "newest",
) -> List[UserProfile]:
    """Other users' profiles, filtered and sorted in memory"""
    profiles = list_profiles(db, limit)
    return browse_users(
        profiles,
        exclude_uid=uid,
        search=search,
        category=category,
        skill_type=skill_type,
        sort_by=sort_by,
    )
