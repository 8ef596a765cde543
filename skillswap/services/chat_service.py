# skillswap/services/chat_service.py

from google.api_core.exceptions import GoogleAPICallError
from google.cloud import firestore
from google.cloud.firestore import FieldFilter
from typing import List, Optional
from skillswap.database.connection import CONVERSATIONS, USERS, messages_collection
from skillswap.models.chat import (
    Conversation,
    ConversationListItem,
    ConversationThread,
    Message,
    SendMessageRequest,
    SendMessageResponse,
)
from skillswap.models.document import parse_documents
from skillswap.models.user import UserProfile
from skillswap.utils.errors import (
    InvalidRequestError,
    NotFoundError,
    PermissionDeniedError,
    ReadError,
    WriteError,
)
import logging

logger = logging.getLogger(__name__)

ATTACHMENT_ONLY_PREVIEW = "Sent an attachment"


def conversation_id_for(uid: str, other_uid: str) -> str:
    """Deterministic id for the conversation between two users"""
    return "_".join(sorted([uid, other_uid]))


def user_conversations_query(db, uid: str):
    return (
        db.collection(CONVERSATIONS)
        .where(filter=FieldFilter("participants", "array_contains", uid))
        .order_by("lastMessageAt", direction=firestore.Query.DESCENDING)
    )


def conversation_messages_query(db, conversation_id: str):
    return messages_collection(db, conversation_id).order_by("timestamp", direction=firestore.Query.ASCENDING)


def find_conversation(db, uid: str, other_uid: str) -> Optional[Conversation]:
    """
    Scan the user's conversations for one that includes `other_uid`.
    Conversations created before ids were derived from the participant
    pair only turn up this way.
    """
    try:
        snapshots = (
            db.collection(CONVERSATIONS)
            .where(filter=FieldFilter("participants", "array_contains", uid))
            .stream()
        )
        matches = [c for c in parse_documents(Conversation, snapshots) if other_uid in c.participants]
    except GoogleAPICallError as e:
        logger.error(f"Error looking up conversation for {uid} and {other_uid}: {str(e)}")
        raise ReadError(f"Error looking up conversation: {str(e)}") from e

    if not matches:
        return None
    if len(matches) > 1:
        logger.warning(f"{len(matches)} conversations found between {uid} and {other_uid}")

    preferred = conversation_id_for(uid, other_uid)
    for conversation in matches:
        if conversation.id == preferred:
            return conversation
    return matches[0]


def get_conversation(db, conversation_id: str, uid: str) -> Conversation:
    """Fetch a conversation the user takes part in"""
    try:
        snapshot = db.collection(CONVERSATIONS).document(conversation_id).get()
    except GoogleAPICallError as e:
        raise ReadError(f"Error fetching conversation: {str(e)}") from e

    conversation = Conversation.from_snapshot(snapshot)
    if conversation is None:
        raise NotFoundError("Conversation not found")
    if uid not in conversation.participants:
        raise PermissionDeniedError("You are not a participant in this conversation")
    return conversation


def send_message(db, sender_id: str, request: SendMessageRequest) -> SendMessageResponse:
    """
    Append a message to the conversation between sender and recipient,
    creating the conversation on first contact.

    The conversation summary, the message and (when needed) the
    conversation itself are written in one batch, so a failure never
    leaves an empty conversation behind.
    """
    text = request.text.strip()
    if not text and not request.attachments:
        raise InvalidRequestError("Message cannot be empty")
    if sender_id == request.recipient_id:
        raise InvalidRequestError("You cannot message yourself")

    try:
        recipient_snapshot = db.collection(USERS).document(request.recipient_id).get()
    except GoogleAPICallError as e:
        raise ReadError(f"Error fetching recipient: {str(e)}") from e
    recipient = UserProfile.from_snapshot(recipient_snapshot)
    if recipient is None:
        raise NotFoundError("Recipient not found")

    existing = find_conversation(db, sender_id, request.recipient_id)
    if existing is None and not recipient.settings.privacy_settings.allow_messages:
        raise PermissionDeniedError("This user does not accept new messages")

    conversations = db.collection(CONVERSATIONS)
    if existing is not None:
        conversation_ref = conversations.document(existing.id)
    else:
        conversation_ref = conversations.document(conversation_id_for(sender_id, request.recipient_id))

    messages = messages_collection(db, conversation_ref.id)
    if request.client_message_id:
        message_ref = messages.document(request.client_message_id)
        try:
            already_sent = message_ref.get().exists
        except GoogleAPICallError as e:
            logger.error(f"Error checking message {request.client_message_id}: {str(e)}")
            raise ReadError(f"Error checking message: {str(e)}") from e
        if already_sent:
            logger.info(f"Duplicate send of message {request.client_message_id} ignored")
            return SendMessageResponse(
                conversation_id=conversation_ref.id,
                message_id=message_ref.id,
                created_conversation=False,
            )
    else:
        message_ref = messages.document()

    summary = {
        "lastMessage": text or ATTACHMENT_ONLY_PREVIEW,
        "lastMessageAt": firestore.SERVER_TIMESTAMP,
        "lastSender": sender_id,
        "unreadCount": {request.recipient_id: firestore.Increment(1)},
    }
    if existing is None:
        # concurrent first sends target the same document and merge into it
        summary["participants"] = [sender_id, request.recipient_id]
        summary["createdAt"] = firestore.SERVER_TIMESTAMP

    batch = db.batch()
    batch.set(conversation_ref, summary, merge=True)
    batch.set(message_ref, {
        "senderId": sender_id,
        "text": text,
        "timestamp": firestore.SERVER_TIMESTAMP,
        "attachments": list(request.attachments),
        "read": False,
    })
    try:
        batch.commit()
    except GoogleAPICallError as e:
        logger.error(f"Error sending message from {sender_id}: {str(e)}")
        raise WriteError(f"Error sending message: {str(e)}") from e

    logger.info(f"Message {message_ref.id} sent in conversation {conversation_ref.id}")
    return SendMessageResponse(
        conversation_id=conversation_ref.id,
        message_id=message_ref.id,
        created_conversation=existing is None,
    )


def list_messages(db, conversation_id: str) -> List[Message]:
    try:
        return parse_documents(Message, conversation_messages_query(db, conversation_id).stream())
    except GoogleAPICallError as e:
        raise ReadError(f"Error fetching messages: {str(e)}") from e


def list_conversations(db, uid: str) -> List[ConversationListItem]:
    """The user's conversations, most recent first, with the other user's details"""
    try:
        conversations = parse_documents(Conversation, user_conversations_query(db, uid).stream())
    except GoogleAPICallError as e:
        logger.error(f"Error fetching conversations for {uid}: {str(e)}")
        raise ReadError(f"Error fetching conversations: {str(e)}") from e

    items = []
    for conversation in conversations:
        other_id = conversation.other_participant(uid)
        if not other_id:
            continue
        try:
            other_user = UserProfile.from_snapshot(db.collection(USERS).document(other_id).get())
        except (GoogleAPICallError, ReadError):
            logger.warning(f"Could not load user {other_id} for conversation {conversation.id}")
            other_user = None

        items.append(ConversationListItem(
            conversation_id=conversation.id,
            other_user_id=other_id,
            other_user_name=(other_user.display_name if other_user else None) or "Unknown User",
            other_user_photo=other_user.photo_url if other_user else None,
            last_message=conversation.last_message or "No messages yet",
            last_message_time=conversation.last_message_at,
            unread_count=conversation.unread_for(uid),
            is_last_message_mine=conversation.last_sender == uid,
        ))
    return items


def get_thread(db, uid: str, other_uid: str) -> ConversationThread:
    try:
        other_user = UserProfile.from_snapshot(db.collection(USERS).document(other_uid).get())
    except GoogleAPICallError as e:
        raise ReadError(f"Error fetching user: {str(e)}") from e
    if other_user is None:
        raise NotFoundError("User not found")

    conversation = find_conversation(db, uid, other_uid)
    if conversation is None:
        # created when the first message is sent
        return ConversationThread(other_user=other_user)

    return ConversationThread(
        conversation=conversation,
        other_user=other_user,
        messages=list_messages(db, conversation.id),
    )


def mark_conversation_read(db, conversation_id: str, uid: str) -> int:
    """Reset the user's unread counter and flag incoming messages read"""
    conversation = get_conversation(db, conversation_id, uid)
    other_id = conversation.other_participant(uid)

    try:
        unread = list(
            messages_collection(db, conversation_id)
            .where(filter=FieldFilter("senderId", "==", other_id))
            .where(filter=FieldFilter("read", "==", False))
            .stream()
        )
        batch = db.batch()
        batch.set(
            db.collection(CONVERSATIONS).document(conversation_id),
            {"unreadCount": {uid: 0}},
            merge=True,
        )
        for snapshot in unread:
            batch.update(snapshot.reference, {"read": True})
        batch.commit()
    except GoogleAPICallError as e:
        logger.error(f"Error marking conversation {conversation_id} read: {str(e)}")
        raise WriteError(f"Error marking conversation read: {str(e)}") from e

    return len(unread)
