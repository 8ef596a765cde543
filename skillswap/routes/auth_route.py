from fastapi import APIRouter, HTTPException, Depends
from skillswap.database.connection import get_db
from skillswap.models.user import Identity, LoginRequest, LoginResponse, UserProfile
from skillswap.routes.firebase_auth import get_current_user
from skillswap.services.session_service import ensure_profile, sign_in_with_password, sign_out_everywhere
from skillswap.utils.errors import SkillSwapError
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/login", response_model=LoginResponse)
async def login(credentials: LoginRequest, db=Depends(get_db)):
    """Password sign-in; creates the profile on first sign-in"""
    try:
        result = sign_in_with_password(credentials.email, credentials.password)
        identity = Identity(
            uid=result["localId"],
            email=result.get("email"),
            display_name=result.get("displayName") or None,
            photo_url=result.get("profilePicture"),
        )
        profile, created = ensure_profile(db, identity)
        if created:
            logger.info(f"First sign-in for UID: {identity.uid}")

        return LoginResponse(
            id_token=result["idToken"],
            refresh_token=result["refreshToken"],
            expires_in=int(result.get("expiresIn", 3600)),
            profile=profile,
        )
    except SkillSwapError as e:
        raise e.to_http()
    except Exception as e:
        logger.error(f"Error during login: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Login failed")


@router.post("/session", response_model=UserProfile)
async def start_session(
    current_user: Identity = Depends(get_current_user),
    db=Depends(get_db)
):
    """Called by clients right after a client-side sign-in"""
    try:
        profile, _ = ensure_profile(db, current_user)
        return profile
    except SkillSwapError as e:
        raise e.to_http()
    except Exception as e:
        logger.error(f"Error starting session for UID {current_user.uid}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/logout")
async def logout(current_user: Identity = Depends(get_current_user)):
    try:
        sign_out_everywhere(current_user.uid)
        return {"message": "Signed out successfully"}
    except SkillSwapError as e:
        raise e.to_http()
