from fastapi import APIRouter, HTTPException, Depends, Query, status
from typing import List
from skillswap.database.connection import get_db
from skillswap.models.swap import Swap, SwapCreate, SwapStatus
from skillswap.models.user import Identity
from skillswap.routes.firebase_auth import get_current_user
from skillswap.services import swap_service
from skillswap.utils.errors import SkillSwapError
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=Swap, status_code=status.HTTP_201_CREATED)
async def propose_swap(
    request: SwapCreate,
    current_user: Identity = Depends(get_current_user),
    db=Depends(get_db)
):
    try:
        return swap_service.propose_swap(db, current_user.uid, request)
    except SkillSwapError as e:
        raise e.to_http()
    except Exception as e:
        logger.error(f"Error proposing swap: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@router.get("", response_model=List[Swap])
async def list_my_swaps(
    swap_status: SwapStatus = Query(SwapStatus.PENDING, alias="status"),
    current_user: Identity = Depends(get_current_user),
    db=Depends(get_db)
):
    try:
        return swap_service.list_swaps(db, current_user.uid, swap_status)
    except SkillSwapError as e:
        raise e.to_http()


@router.get("/with/{other_uid}", response_model=List[Swap])
async def swap_history(
    other_uid: str,
    current_user: Identity = Depends(get_current_user),
    db=Depends(get_db)
):
    """Every swap between the caller and another user"""
    try:
        return swap_service.swaps_between(db, current_user.uid, other_uid)
    except SkillSwapError as e:
        raise e.to_http()
