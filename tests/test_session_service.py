"""Tests for the session/identity provider."""

import pytest

from skillswap.services.session_service import SessionProvider, ensure_profile
from skillswap.utils.errors import IdentityError


def test_ensure_profile_creates_once(db, alice):
    profile, created = ensure_profile(db, alice)
    assert created is True
    assert profile.uid == "alice"
    assert profile.display_name == "Alice"
    assert profile.onboarding_completed is False
    assert profile.skills_offered == []

    again, created_again = ensure_profile(db, alice)
    assert created_again is False
    assert again.created_at == profile.created_at
    assert len(db.docs_in("users")) == 1


def test_sign_in_bootstraps_profile_and_notifies(db, tokens):
    session = SessionProvider(db)
    seen = []
    session.on_identity_change(seen.append)
    assert session.is_loading is True

    identity = session.sign_in("alice-token")

    assert identity.uid == "alice"
    assert session.is_loading is False
    assert session.profile.uid == "alice"
    assert "users/alice" in db.documents
    assert [i.uid for i in seen] == ["alice"]


def test_sign_in_with_bad_token_stays_anonymous(db, tokens):
    session = SessionProvider(db)
    seen = []
    session.on_identity_change(seen.append)

    with pytest.raises(IdentityError):
        session.sign_in("forged")

    assert session.identity is None
    assert session.is_loading is False
    # the first failed attempt settles the session as signed out, once
    assert seen == [None]

    with pytest.raises(IdentityError):
        session.sign_in("forged")
    assert seen == [None]


def test_resolve_anonymous_clears_loading_once(db):
    session = SessionProvider(db)
    seen = []
    session.on_identity_change(seen.append)

    session.resolve_anonymous()
    session.resolve_anonymous()
    session.sign_out()

    assert session.is_loading is False
    assert seen == [None]


def test_token_refresh_for_same_user_does_not_renotify(db, tokens):
    session = SessionProvider(db)
    seen = []
    session.on_identity_change(seen.append)

    session.sign_in("alice-token")
    session.sign_in("alice-token")

    assert len(seen) == 1


def test_sign_out_notifies_none(db, tokens):
    session = SessionProvider(db)
    seen = []
    unsubscribe = session.on_identity_change(seen.append)

    session.sign_in("alice-token")
    session.sign_out()
    unsubscribe()
    session.sign_in("bob-token")

    assert seen[0].uid == "alice"
    assert seen[1] is None
    assert len(seen) == 2
    assert session.identity.uid == "bob"


def test_profile_bootstrap_failure_keeps_identity(db, tokens):
    db.fail_writes = True
    session = SessionProvider(db)

    identity = session.sign_in("alice-token")

    assert identity.uid == "alice"
    assert session.identity is not None
    assert session.profile is None
