import firebase_admin, json, logging
from firebase_admin import credentials, firestore
from functools import lru_cache
from skillswap.config.settings import settings

logger = logging.getLogger(__name__)

# collections
USERS = "users"
SWAPS = "swaps"
CONVERSATIONS = "conversations"
MESSAGES = "messages"   # sub-collection of a conversation


def init_firebase():
    """Initialize the default Firebase app once per process."""
    if firebase_admin._apps:
        return firebase_admin.get_app()

    if settings.FIREBASE_JSON:
        # Running on a host that injects the service account as env
        cred = credentials.Certificate(json.loads(settings.FIREBASE_JSON))
    elif settings.FIREBASE_KEY_PATH:
        # Running LOCALLY → load from file
        cred = credentials.Certificate(settings.FIREBASE_KEY_PATH)
    else:
        # Application default credentials (emulator or GCP runtime)
        cred = credentials.ApplicationDefault()

    app = firebase_admin.initialize_app(cred, {
        "storageBucket": settings.FIREBASE_STORAGE_BUCKET
    })
    logger.info(f"Firebase initialized for bucket '{settings.FIREBASE_STORAGE_BUCKET}'")
    return app


@lru_cache
def get_db():
    init_firebase()
    return firestore.client()


def messages_collection(db, conversation_id: str):
    return db.collection(CONVERSATIONS).document(conversation_id).collection(MESSAGES)
