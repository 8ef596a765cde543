from google.api_core.exceptions import GoogleAPICallError
from google.cloud import firestore
from google.cloud.firestore import FieldFilter
from typing import List
from skillswap.database.connection import SWAPS, USERS
from skillswap.models.document import parse_documents
from skillswap.models.swap import SWAP_ORDER_FIELDS, Swap, SwapCreate, SwapStatus
from skillswap.utils.errors import InvalidRequestError, NotFoundError, ReadError, WriteError
import logging

logger = logging.getLogger(__name__)


def swaps_query(db, uid: str, status: SwapStatus):
    """Swaps the user takes part in with the given status, newest first"""
    return (
        db.collection(SWAPS)
        .where(filter=FieldFilter("participants", "array_contains", uid))
        .where(filter=FieldFilter("status", "==", status.value))
        .order_by(SWAP_ORDER_FIELDS[status], direction=firestore.Query.DESCENDING)
    )


def propose_swap(db, proposer_id: str, request: SwapCreate) -> Swap:
    """Create a pending swap between the proposer and the recipient"""
    if proposer_id == request.recipient_id:
        raise InvalidRequestError("You cannot propose a swap to yourself")

    users = db.collection(USERS)
    try:
        proposer_exists = users.document(proposer_id).get().exists
        recipient_exists = users.document(request.recipient_id).get().exists
    except GoogleAPICallError as e:
        raise ReadError(f"Error checking participants: {str(e)}") from e

    if not proposer_exists:
        raise NotFoundError("Your profile was not found")
    if not recipient_exists:
        raise NotFoundError("Recipient not found")

    swap_data = {
        "participants": [proposer_id, request.recipient_id],
        "proposerId": proposer_id,
        "recipientId": request.recipient_id,
        "status": SwapStatus.PENDING.value,
        "skillOffered": request.skill_offered.strip(),
        "skillRequested": request.skill_requested.strip(),
        "message": request.message.strip(),
        "requestDate": firestore.SERVER_TIMESTAMP,
        "createdAt": firestore.SERVER_TIMESTAMP,
        "updatedAt": firestore.SERVER_TIMESTAMP,
    }

    try:
        _, doc_ref = db.collection(SWAPS).add(swap_data)
        created = doc_ref.get()
    except GoogleAPICallError as e:
        logger.error(f"Error creating swap: {str(e)}")
        raise WriteError(f"Error creating swap: {str(e)}") from e

    logger.info(f"Swap {doc_ref.id} proposed by {proposer_id} to {request.recipient_id}")
    return Swap.from_snapshot(created)


def list_swaps(db, uid: str, status: SwapStatus) -> List[Swap]:
    try:
        return parse_documents(Swap, swaps_query(db, uid, status).stream())
    except GoogleAPICallError as e:
        logger.error(f"Error fetching {status.value} swaps for {uid}: {str(e)}")
        raise ReadError(f"Error fetching swaps: {str(e)}") from e


def swaps_between(db, uid: str, other_uid: str) -> List[Swap]:
    """Swap history between two users, any status"""
    try:
        snapshots = (
            db.collection(SWAPS)
            .where(filter=FieldFilter("participants", "array_contains", uid))
            .stream()
        )
        swaps = parse_documents(Swap, snapshots)
    except GoogleAPICallError as e:
        raise ReadError(f"Error fetching swaps: {str(e)}") from e

    return [swap for swap in swaps if other_uid in swap.participants]
