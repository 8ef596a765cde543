from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from skillswap.models.user import Identity
from skillswap.services.session_service import verify_id_token
from skillswap.utils.errors import IdentityError
import asyncio, logging

logger = logging.getLogger(__name__)

security = HTTPBearer()


async def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)) -> Identity:
    """Verify the Firebase ID token and return the caller's identity"""
    try:
        # verify_id_token may fetch Google's public keys, keep it off the event loop
        loop = asyncio.get_event_loop()
        decoded_token = await loop.run_in_executor(None, verify_id_token, credentials.credentials)
    except IdentityError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.detail,
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.info(f"Token verified for UID: {decoded_token['uid']}")
    return Identity.from_token(decoded_token)
