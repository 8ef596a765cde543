"""Tests for the live state store and its Firestore listeners."""

import threading

import pytest

from skillswap.models.chat import SendMessageRequest
from skillswap.models.swap import SwapCreate
from skillswap.services import chat_service, swap_service
from skillswap.services.subscription_service import AppState, LiveSession, SubscriptionComposer
from skillswap.utils.errors import IdentityError


def make_composer(db):
    store = AppState()
    return store, SubscriptionComposer(db, store)


def propose(db, proposer="alice", recipient="bob", offered="Guitar"):
    request = SwapCreate(recipient_id=recipient, skill_offered=offered, skill_requested="Spanish")
    return swap_service.propose_swap(db, proposer, request)


def test_store_notifies_listeners_with_increasing_versions():
    store = AppState()
    versions = []
    unsubscribe = store.subscribe(lambda snapshot: versions.append(snapshot.version))

    store.set_conversations([])
    store.set_messages([])
    unsubscribe()
    store.set_messages([])

    assert versions == [1, 2]
    assert store.snapshot().version == 3


def test_failing_listener_does_not_block_others():
    store = AppState()
    seen = []

    def broken(snapshot):
        raise RuntimeError("boom")

    store.subscribe(broken)
    store.subscribe(seen.append)
    store.set_profile(None)

    assert len(seen) == 1


def test_updates_from_two_threads_are_delivered_in_version_order():
    store = AppState()
    delivered = []
    entered, release = threading.Event(), threading.Event()

    def slow_listener(snapshot):
        if snapshot.version == 1:
            entered.set()
            release.wait(timeout=5)
        delivered.append(snapshot.version)

    store.subscribe(slow_listener)
    first = threading.Thread(target=store.set_profile, args=(None,))
    first.start()
    assert entered.wait(timeout=5)

    second = threading.Thread(target=store.set_conversations, args=([],))
    second.start()
    second.join(timeout=0.2)
    release.set()
    first.join(timeout=5)
    second.join(timeout=5)

    assert delivered == [1, 2]
    assert delivered[-1] == store.snapshot().version


def test_rejected_token_clears_loading_in_store(db, tokens):
    live = LiveSession(db)
    assert live.store.snapshot().is_loading is True

    with pytest.raises(IdentityError):
        live.session.sign_in("forged")

    state = live.store.snapshot()
    assert state.is_loading is False
    assert state.identity is None
    live.close()


def test_anonymous_session_clears_loading_in_store(db):
    live = LiveSession(db)

    live.session.resolve_anonymous()

    assert live.store.snapshot().is_loading is False
    assert db.active_watches() == []
    live.close()


def test_attach_populates_every_slice(db, profiles):
    swap = propose(db)
    chat_service.send_message(db, "bob", SendMessageRequest(recipient_id="alice", text="hey"))
    store, composer = make_composer(db)

    composer.attach("alice")

    state = store.snapshot()
    assert state.profile.uid == "alice"
    assert [s.id for s in state.swaps.pending] == [swap.id]
    assert state.swaps.active == []
    assert state.swaps.completed == []
    assert [c.id for c in state.conversations] == ["alice_bob"]


def test_each_swap_listener_only_replaces_its_own_bucket(db, profiles):
    pending = propose(db, offered="Guitar")
    done = propose(db, offered="Piano")
    db.collection("swaps").document(done.id).update({"status": "completed", "completionDate": db.now()})
    store, composer = make_composer(db)
    composer.attach("alice")

    # a later completed-bucket delivery must not wipe the pending bucket
    other = propose(db, offered="Chess")
    db.collection("swaps").document(other.id).update({"status": "completed", "completionDate": db.now()})

    state = store.snapshot()
    assert [s.id for s in state.swaps.pending] == [pending.id]
    assert [s.id for s in state.swaps.completed] == [other.id, done.id]


def test_status_change_moves_swap_on_next_snapshot(db, profiles):
    swap = propose(db)
    store, composer = make_composer(db)
    composer.attach("bob")
    assert [s.id for s in store.snapshot().swaps.pending] == [swap.id]

    db.collection("swaps").document(swap.id).update({"status": "active", "startDate": db.now()})

    state = store.snapshot()
    assert state.swaps.pending == []
    assert [s.id for s in state.swaps.active] == [swap.id]


def test_profile_edit_reaches_the_store(db, profiles):
    store, composer = make_composer(db)
    composer.attach("alice")

    db.collection("users").document("alice").update({"bio": "Loves sourdough"})

    assert store.snapshot().profile.bio == "Loves sourdough"


def test_open_conversation_streams_messages(db, profiles):
    sent = chat_service.send_message(db, "alice", SendMessageRequest(recipient_id="bob", text="first"))
    store, composer = make_composer(db)
    composer.attach("alice")

    composer.open_conversation(sent.conversation_id)
    chat_service.send_message(db, "bob", SendMessageRequest(recipient_id="alice", text="second"))

    state = store.snapshot()
    assert state.current_conversation == sent.conversation_id
    assert [m.text for m in state.messages] == ["first", "second"]


def test_switching_conversations_drops_previous_messages(db, profiles):
    db.collection("users").document("carol").set({"uid": "carol", "displayName": "Carol"})
    with_bob = chat_service.send_message(db, "alice", SendMessageRequest(recipient_id="bob", text="to bob"))
    with_carol = chat_service.send_message(db, "alice", SendMessageRequest(recipient_id="carol", text="to carol"))
    store, composer = make_composer(db)
    composer.attach("alice")

    composer.open_conversation(with_bob.conversation_id)
    composer.open_conversation(with_carol.conversation_id)
    chat_service.send_message(db, "bob", SendMessageRequest(recipient_id="alice", text="late reply"))

    state = store.snapshot()
    assert state.current_conversation == with_carol.conversation_id
    assert [m.text for m in state.messages] == ["to carol"]

    composer.open_conversation(None)
    state = store.snapshot()
    assert state.current_conversation is None
    assert state.messages == []


def test_detach_closes_all_listeners_and_clears_state(db, profiles):
    sent = chat_service.send_message(db, "alice", SendMessageRequest(recipient_id="bob", text="hi"))
    store, composer = make_composer(db)
    composer.attach("alice")
    composer.open_conversation(sent.conversation_id)
    assert len(db.active_watches()) == 6

    composer.detach()

    assert db.active_watches() == []
    state = store.snapshot()
    assert state.identity is None
    assert state.profile is None
    assert state.conversations == []
    assert state.messages == []
    assert state.swaps.pending == []


def test_listener_failure_leaves_slice_empty(db, profiles):
    db.fail_reads = True
    store, composer = make_composer(db)

    composer.attach("alice")

    state = store.snapshot()
    assert state.profile is None
    assert state.conversations == []
    assert db.active_watches() == []


def test_live_session_follows_sign_in_and_sign_out(db, profiles, tokens):
    live = LiveSession(db)
    assert live.store.snapshot().is_loading is True

    live.session.sign_in("alice-token")
    state = live.store.snapshot()
    assert state.identity.uid == "alice"
    assert state.is_loading is False
    assert state.profile.uid == "alice"
    assert len(db.active_watches()) == 5

    live.session.sign_in("bob-token")
    assert live.store.snapshot().identity.uid == "bob"
    assert len(db.active_watches()) == 5

    live.session.sign_out()
    assert live.store.snapshot().identity is None
    assert db.active_watches() == []

    live.close()
    assert db.active_watches() == []
