from firebase_admin import auth
from firebase_admin import exceptions as firebase_exceptions
from google.api_core.exceptions import GoogleAPICallError
from typing import Callable, List, Optional, Tuple
from skillswap.config.settings import settings
from skillswap.database.connection import USERS
from skillswap.models.user import Identity, UserProfile, UserSettings
from skillswap.services.profile_service import now_iso
from skillswap.utils.errors import IdentityError, ReadError, SkillSwapError, WriteError
import threading, logging, requests

logger = logging.getLogger(__name__)

IdentityListener = Callable[[Optional[Identity]], None]


# ****************************************************
#  Firebase identity helpers
# ****************************************************

def verify_id_token(id_token: str) -> dict:
    if not id_token:
        raise IdentityError("No token provided")
    try:
        return auth.verify_id_token(id_token)
    except (ValueError, firebase_exceptions.FirebaseError) as e:
        logger.warning(f"Token verification failed: {str(e)}")
        raise IdentityError("Invalid or expired token") from e


def sign_in_with_password(email: str, password: str) -> dict:
    """Password sign-in through the Identity Toolkit REST API"""
    url = f"{settings.IDENTITY_TOOLKIT_URL}/accounts:signInWithPassword?key={settings.FIREBASE_API_KEY}"
    payload = {
        "email": email,
        "password": password,
        "returnSecureToken": True
    }
    try:
        response = requests.post(url, json=payload, timeout=10)
    except requests.RequestException as e:
        logger.error(f"Identity Toolkit unreachable: {str(e)}")
        raise IdentityError("Sign-in service unavailable") from e

    if response.status_code != 200:
        logger.warning(f"Sign-in failed for {email}: HTTP {response.status_code}")
        raise IdentityError("Invalid email or password")
    return response.json()


def sign_out_everywhere(uid: str):
    """Revoke refresh tokens so every device has to sign in again"""
    try:
        auth.revoke_refresh_tokens(uid)
    except firebase_exceptions.FirebaseError as e:
        logger.error(f"Error signing out {uid}: {str(e)}")
        raise IdentityError("Sign-out failed") from e
    logger.info(f"Refresh tokens revoked for UID: {uid}")


# ****************************************************
#  Profile bootstrap
# ****************************************************

def default_profile(identity: Identity) -> dict:
    now = now_iso()
    return {
        "uid": identity.uid,
        "email": identity.email,
        "displayName": identity.display_name,
        "photoURL": identity.photo_url,
        "bio": "",
        "location": "",
        "availability": "",
        "skillsOffered": [],
        "skillsWanted": [],
        "onboardingCompleted": False,
        "ratings": [],
        "settings": UserSettings().model_dump(by_alias=True),
        "createdAt": now,
        "updatedAt": now,
    }


def ensure_profile(db, identity: Identity) -> Tuple[UserProfile, bool]:
    """
    Return the user's profile, creating it with defaults on first sign-in.
    Second value tells whether the document was created.
    """
    doc_ref = db.collection(USERS).document(identity.uid)
    try:
        snapshot = doc_ref.get()
    except GoogleAPICallError as e:
        raise ReadError(f"Error reading profile: {str(e)}") from e

    if snapshot.exists:
        return UserProfile.from_snapshot(snapshot), False

    data = default_profile(identity)
    try:
        doc_ref.set(data)
    except GoogleAPICallError as e:
        raise WriteError(f"Error creating profile: {str(e)}") from e

    logger.info(f"Profile created for UID: {identity.uid}")
    return UserProfile.from_dict(identity.uid, data), True


# ****************************************************
#  Session provider
# ****************************************************

class SessionProvider:
    """
    Holds the identity of one connected client.

    Listeners registered with on_identity_change are told about every
    transition: an Identity on sign-in, None on sign-out.
    """

    def __init__(self, db, token_verifier: Callable[[str], dict] = verify_id_token):
        self._db = db
        self._verify = token_verifier
        self._lock = threading.Lock()
        self._listeners: List[IdentityListener] = []
        self.identity: Optional[Identity] = None
        self.profile: Optional[UserProfile] = None
        self.is_loading = True

    def on_identity_change(self, listener: IdentityListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)
        return unsubscribe

    def _notify(self, identity: Optional[Identity]):
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(identity)
            except Exception:
                logger.error("Identity listener failed", exc_info=True)

    def resolve_anonymous(self):
        """
        Settle the initial loading state as signed out. Listeners hear None
        once, the first time the session resolves without a user.
        """
        was_loading = self.is_loading
        self.is_loading = False
        if was_loading and self.identity is None:
            self._notify(None)

    def sign_in(self, id_token: str) -> Identity:
        try:
            decoded = self._verify(id_token)
        except IdentityError:
            if self.identity is None:
                self.resolve_anonymous()
            raise

        identity = Identity.from_token(decoded)
        previous = self.identity
        self.identity = identity

        if previous is not None and previous.uid == identity.uid:
            # token refresh for the same user
            self.is_loading = False
            return identity

        try:
            self.profile, _ = ensure_profile(self._db, identity)
        except SkillSwapError as e:
            # the session stays signed in without a profile
            logger.error(f"Profile bootstrap failed for UID {identity.uid}: {e.detail}")
            self.profile = None

        self.is_loading = False
        self._notify(identity)
        return identity

    def sign_out(self):
        if self.identity is None:
            self.resolve_anonymous()
            return
        logger.info(f"Session signed out for UID: {self.identity.uid}")
        self.identity = None
        self.profile = None
        self._notify(None)
