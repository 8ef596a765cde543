from google.api_core.exceptions import GoogleAPICallError
from pydantic import BaseModel, Field
from typing import Callable, List, Optional
from skillswap.database.connection import USERS
from skillswap.models.chat import Conversation, Message
from skillswap.models.document import parse_documents
from skillswap.models.swap import Swap, SwapBuckets, SwapStatus
from skillswap.models.user import Identity, UserProfile
from skillswap.services.chat_service import conversation_messages_query, user_conversations_query
from skillswap.services.session_service import SessionProvider, verify_id_token
from skillswap.services.swap_service import swaps_query
from skillswap.utils.errors import ReadError
import threading, logging

logger = logging.getLogger(__name__)


class AppStateSnapshot(BaseModel):
    identity: Optional[Identity] = None
    is_loading: bool = True
    profile: Optional[UserProfile] = None
    swaps: SwapBuckets = Field(default_factory=SwapBuckets)
    conversations: List[Conversation] = Field(default_factory=list)
    current_conversation: Optional[str] = None
    messages: List[Message] = Field(default_factory=list)
    version: int = 0


StateListener = Callable[[AppStateSnapshot], None]


class AppState:
    """
    Shared state tree of one client session.

    Every slice has its own setter so a listener only ever replaces the
    slice it owns. Setters may be called from Firestore watch threads;
    updates and their notifications are serialized, so every listener sees
    strictly increasing versions.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._listeners: List[StateListener] = []
        self._state = AppStateSnapshot()

    def snapshot(self) -> AppStateSnapshot:
        with self._lock:
            return self._state.model_copy(deep=True)

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)
        return unsubscribe

    def _update(self, **changes):
        self._apply(lambda state: changes)

    def _apply(self, compute: Callable[[AppStateSnapshot], dict]):
        # listeners run under the lock so versions reach them in order;
        # they must hand the snapshot off, not block
        with self._lock:
            changes = compute(self._state)
            changes["version"] = self._state.version + 1
            self._state = self._state.model_copy(update=changes)
            snapshot = self._state.model_copy(deep=True)

            for listener in list(self._listeners):
                try:
                    listener(snapshot)
                except Exception:
                    logger.error("State listener failed", exc_info=True)

    def set_identity(self, identity: Optional[Identity], is_loading: bool = False):
        self._update(identity=identity, is_loading=is_loading)

    def set_profile(self, profile: Optional[UserProfile]):
        self._update(profile=profile)

    def set_swap_bucket(self, status: SwapStatus, swaps: List[Swap]):
        bucket = SwapStatus(status).value
        self._apply(lambda state: {"swaps": state.swaps.model_copy(update={bucket: list(swaps)})})

    def set_conversations(self, conversations: List[Conversation]):
        self._update(conversations=list(conversations))

    def set_current_conversation(self, conversation_id: Optional[str]):
        self._update(current_conversation=conversation_id, messages=[])

    def set_messages(self, messages: List[Message]):
        self._update(messages=list(messages))

    def reset(self):
        """Clear everything tied to a signed-in user"""
        self._update(
            identity=None,
            is_loading=False,
            profile=None,
            swaps=SwapBuckets(),
            conversations=[],
            current_conversation=None,
            messages=[],
        )


class SubscriptionComposer:
    """
    Opens the Firestore listeners for one signed-in user and feeds their
    snapshots into an AppState:

    - the user's profile document
    - swaps per status (one listener each)
    - the user's conversations, most recent first
    - messages of the open conversation, oldest first

    Every attach/detach bumps a scope counter; snapshots delivered by a
    listener from an older scope are dropped.
    """

    def __init__(self, db, store: AppState):
        self._db = db
        self._store = store
        self._lock = threading.Lock()
        self._watches = []
        self._message_watch = None
        self._scope = 0
        self._conversation_scope = 0
        self.uid: Optional[str] = None

    # ---------------- lifecycle ----------------

    def bind(self, session: SessionProvider) -> Callable[[], None]:
        """Follow a session: attach on sign-in, detach on sign-out"""
        self._store.set_identity(session.identity, is_loading=session.is_loading)
        return session.on_identity_change(self._on_identity_change)

    def _on_identity_change(self, identity: Optional[Identity]):
        if identity is None:
            self.detach()
            return
        self.detach()
        self._store.set_identity(identity)
        self.attach(identity.uid)

    def attach(self, uid: str):
        with self._lock:
            self._scope += 1
            scope = self._scope
            self.uid = uid

        self._watch(
            scope,
            lambda: self._db.collection(USERS).document(uid).on_snapshot(self._on_profile(scope)),
            on_failure=lambda: self._store.set_profile(None),
        )
        for status in SwapStatus:
            self._watch(
                scope,
                lambda status=status: swaps_query(self._db, uid, status).on_snapshot(self._on_swaps(scope, status)),
                on_failure=lambda status=status: self._store.set_swap_bucket(status, []),
            )
        self._watch(
            scope,
            lambda: user_conversations_query(self._db, uid).on_snapshot(self._on_conversations(scope)),
            on_failure=lambda: self._store.set_conversations([]),
        )
        logger.info(f"Listeners attached for UID: {uid}")

    def detach(self):
        with self._lock:
            self._scope += 1
            self._conversation_scope += 1
            watches, self._watches = self._watches, []
            message_watch, self._message_watch = self._message_watch, None
            uid, self.uid = self.uid, None

        for watch in watches + ([message_watch] if message_watch else []):
            self._unsubscribe(watch)
        self._store.reset()
        if uid:
            logger.info(f"Listeners detached for UID: {uid}")

    def open_conversation(self, conversation_id: Optional[str]):
        """Switch the message listener to another conversation (None closes it)"""
        with self._lock:
            self._conversation_scope += 1
            scope = self._conversation_scope
            previous, self._message_watch = self._message_watch, None

        if previous:
            self._unsubscribe(previous)
        self._store.set_current_conversation(conversation_id)
        if not conversation_id:
            return

        try:
            watch = conversation_messages_query(self._db, conversation_id).on_snapshot(
                self._on_messages(scope)
            )
        except GoogleAPICallError as e:
            logger.error(f"Error subscribing to conversation {conversation_id}: {str(e)}")
            self._store.set_messages([])
            return

        with self._lock:
            if scope == self._conversation_scope:
                self._message_watch = watch
                return
        # superseded while subscribing
        self._unsubscribe(watch)

    # ---------------- helpers ----------------

    def _watch(self, scope: int, subscribe, on_failure):
        try:
            watch = subscribe()
        except GoogleAPICallError as e:
            logger.error(f"Error opening listener: {str(e)}")
            on_failure()
            return

        with self._lock:
            if scope == self._scope:
                self._watches.append(watch)
                return
        self._unsubscribe(watch)

    @staticmethod
    def _unsubscribe(watch):
        try:
            watch.unsubscribe()
        except Exception:
            logger.warning("Error closing listener", exc_info=True)

    def _current(self, scope: int) -> bool:
        with self._lock:
            return scope == self._scope

    def _on_profile(self, scope: int):
        def callback(docs, changes, read_time):
            if not self._current(scope):
                return
            try:
                profile = UserProfile.from_snapshot(docs[0]) if docs else None
            except ReadError:
                profile = None
            self._store.set_profile(profile)
        return callback

    def _on_swaps(self, scope: int, status: SwapStatus):
        def callback(docs, changes, read_time):
            if not self._current(scope):
                return
            self._store.set_swap_bucket(status, parse_documents(Swap, docs))
        return callback

    def _on_conversations(self, scope: int):
        def callback(docs, changes, read_time):
            if not self._current(scope):
                return
            self._store.set_conversations(parse_documents(Conversation, docs))
        return callback

    def _on_messages(self, scope: int):
        def callback(docs, changes, read_time):
            with self._lock:
                if scope != self._conversation_scope:
                    return
            self._store.set_messages(parse_documents(Message, docs))
        return callback


class LiveSession:
    """Session provider, state store and listeners of one connected client"""

    def __init__(self, db, token_verifier: Callable[[str], dict] = verify_id_token):
        self.store = AppState()
        self.session = SessionProvider(db, token_verifier=token_verifier)
        self.composer = SubscriptionComposer(db, self.store)
        self._unbind = self.composer.bind(self.session)

    def close(self):
        self._unbind()
        self.composer.detach()
