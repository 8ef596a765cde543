import pytest
from unittest.mock import patch
from fastapi.testclient import TestClient

from main import app
from skillswap.database.connection import get_db
from skillswap.models.user import Identity
from skillswap.routes.firebase_auth import get_current_user
from skillswap.services.session_service import ensure_profile
from fakes import FakeBucket, FakeFirestore


@pytest.fixture
def db():
    return FakeFirestore()


@pytest.fixture
def bucket():
    fake_bucket = FakeBucket()
    with patch("skillswap.utils.storage_handle.storage.bucket", return_value=fake_bucket):
        yield fake_bucket


@pytest.fixture
def alice():
    return Identity(uid="alice", display_name="Alice", email="alice@example.com")


@pytest.fixture
def bob():
    return Identity(uid="bob", display_name="Bob", email="bob@example.com")


@pytest.fixture
def profiles(db, alice, bob):
    """Alice and Bob with default profiles"""
    alice_profile, _ = ensure_profile(db, alice)
    bob_profile, _ = ensure_profile(db, bob)
    return alice_profile, bob_profile


@pytest.fixture
def tokens(alice, bob):
    """Fake ID tokens accepted by a patched firebase verifier"""
    decoded = {
        "alice-token": {"uid": alice.uid, "name": alice.display_name, "email": alice.email},
        "bob-token": {"uid": bob.uid, "name": bob.display_name, "email": bob.email},
    }

    def verify(token, *args, **kwargs):
        if token not in decoded:
            raise ValueError("Invalid token")
        return decoded[token]

    with patch("skillswap.services.session_service.auth.verify_id_token", side_effect=verify):
        yield decoded


@pytest.fixture
def client(db, alice):
    """Client signed in as Alice, with the in-memory Firestore"""
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_current_user] = lambda: alice
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def anonymous_client(db):
    app.dependency_overrides[get_db] = lambda: db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
