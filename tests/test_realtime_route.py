"""WebSocket state stream tests."""

import asyncio

from skillswap.models.chat import SendMessageRequest
from skillswap.routes.realtime_route import _stop
from skillswap.services import chat_service


def receive_until(ws, predicate, limit=50):
    for _ in range(limit):
        frame = ws.receive_json()
        if predicate(frame):
            return frame
    raise AssertionError("expected frame was not received")


def signed_in_as(uid):
    def check(frame):
        state = frame.get("state") or {}
        return (
            frame["type"] == "state"
            and (state.get("identity") or {}).get("uid") == uid
            and state.get("profile") is not None
        )
    return check


def test_initial_frame_is_loading(anonymous_client, tokens):
    with anonymous_client.websocket_connect("/realtime/ws") as ws:
        frame = ws.receive_json()

    assert frame["type"] == "state"
    assert frame["state"]["identity"] is None
    assert frame["state"]["is_loading"] is True


def test_sign_in_with_query_token_streams_profile(anonymous_client, tokens, profiles):
    with anonymous_client.websocket_connect("/realtime/ws?token=alice-token") as ws:
        frame = receive_until(ws, signed_in_as("alice"))

    state = frame["state"]
    assert state["profile"]["displayName"] == "Alice"
    assert state["swaps"] == {"active": [], "pending": [], "completed": []}


def test_bad_token_sends_error_frame(anonymous_client, tokens):
    with anonymous_client.websocket_connect("/realtime/ws") as ws:
        ws.send_json({"action": "sign_in", "token": "forged"})
        frame = receive_until(ws, lambda f: f["type"] == "error")

    assert frame["detail"] == "Invalid or expired token"


def test_open_conversation_requires_sign_in(anonymous_client, tokens):
    with anonymous_client.websocket_connect("/realtime/ws") as ws:
        ws.send_json({"action": "open_conversation", "conversation_id": "alice_bob"})
        frame = receive_until(ws, lambda f: f["type"] == "error")

    assert frame["detail"] == "Sign in first"


def test_unknown_action(anonymous_client, tokens):
    with anonymous_client.websocket_connect("/realtime/ws") as ws:
        ws.send_json({"action": "dance"})
        frame = receive_until(ws, lambda f: f["type"] == "error")

    assert frame["detail"] == "Unknown action: dance"


def test_messages_stream_into_open_conversation(anonymous_client, db, tokens, profiles):
    sent = chat_service.send_message(db, "bob", SendMessageRequest(recipient_id="alice", text="hello alice"))

    with anonymous_client.websocket_connect("/realtime/ws") as ws:
        ws.send_json({"action": "sign_in", "token": "alice-token"})
        frame = receive_until(ws, lambda f: signed_in_as("alice")(f) and f["state"]["conversations"])
        assert frame["state"]["conversations"][0]["id"] == sent.conversation_id

        ws.send_json({"action": "open_conversation", "conversation_id": sent.conversation_id})
        receive_until(ws, lambda f: f["type"] == "state" and len(f["state"]["messages"]) == 1)

        chat_service.send_message(db, "bob", SendMessageRequest(recipient_id="alice", text="are you there?"))
        frame = receive_until(ws, lambda f: f["type"] == "state" and len(f["state"]["messages"]) == 2)
        assert [m["text"] for m in frame["state"]["messages"]] == ["hello alice", "are you there?"]

        ws.send_json({"action": "logout"})
        frame = receive_until(ws, lambda f: f["type"] == "state" and f["state"]["identity"] is None and not f["state"]["is_loading"])
        assert frame["state"]["messages"] == []

    assert db.active_watches() == []


def test_cannot_open_someone_elses_conversation(anonymous_client, db, tokens, profiles):
    db.collection("conversations").document("bob_carol").set({"participants": ["bob", "carol"]})

    with anonymous_client.websocket_connect("/realtime/ws?token=alice-token") as ws:
        receive_until(ws, signed_in_as("alice"))
        ws.send_json({"action": "open_conversation", "conversation_id": "bob_carol"})
        frame = receive_until(ws, lambda f: f["type"] == "error")

    assert frame["detail"] == "You are not a participant in this conversation"


def test_anonymous_connection_settles_loading(anonymous_client, tokens):
    with anonymous_client.websocket_connect("/realtime/ws") as ws:
        frame = receive_until(ws, lambda f: f["type"] == "state" and not f["state"]["is_loading"])

    assert frame["state"]["identity"] is None


def test_non_json_frame_sends_error_and_keeps_socket_open(anonymous_client, tokens):
    with anonymous_client.websocket_connect("/realtime/ws") as ws:
        ws.send_text("not json")
        frame = receive_until(ws, lambda f: f["type"] == "error")
        assert frame["detail"] == "Frames must be JSON objects"

        ws.send_json({"action": "dance"})
        frame = receive_until(ws, lambda f: f["type"] == "error")
        assert frame["detail"] == "Unknown action: dance"


def test_non_string_conversation_id_is_rejected(anonymous_client, tokens, profiles):
    with anonymous_client.websocket_connect("/realtime/ws?token=alice-token") as ws:
        receive_until(ws, signed_in_as("alice"))
        ws.send_json({"action": "open_conversation", "conversation_id": 123})
        frame = receive_until(ws, lambda f: f["type"] == "error")

    assert frame["detail"] == "conversation_id is required"


def test_stop_collects_a_failed_sender():
    async def scenario():
        async def broken():
            raise RuntimeError("socket closed")

        task = asyncio.create_task(broken())
        await asyncio.sleep(0)
        await _stop(task)
        return task

    task = asyncio.run(scenario())
    assert task.done()
