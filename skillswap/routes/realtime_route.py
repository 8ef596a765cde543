from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from starlette.concurrency import run_in_threadpool
from typing import Optional
from skillswap.database.connection import get_db
from skillswap.services.chat_service import get_conversation
from skillswap.services.subscription_service import AppStateSnapshot, LiveSession
from skillswap.utils.errors import SkillSwapError
import asyncio, contextlib, logging

logger = logging.getLogger(__name__)

router = APIRouter()


async def _forward(websocket: WebSocket, queue: asyncio.Queue):
    while True:
        kind, payload = await queue.get()
        if kind == "state":
            await websocket.send_json({"type": "state", "state": payload.model_dump(mode="json", by_alias=True)})
        else:
            await websocket.send_json({"type": "error", "detail": payload})


async def _stop(task: asyncio.Task):
    """Cancel the sender and collect whatever it ended with"""
    task.cancel()
    with contextlib.suppress(Exception, asyncio.CancelledError):
        await task


@router.websocket("/ws")
async def realtime_state(websocket: WebSocket, token: Optional[str] = Query(None), db=Depends(get_db)):
    """
    Streams the caller's state tree (profile, swaps, conversations, open
    conversation messages) on every change.

    Client frames:
      {"action": "sign_in", "token": "..."}
      {"action": "open_conversation", "conversation_id": "..."}
      {"action": "close_conversation"}
      {"action": "logout"}
    """
    await websocket.accept()
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    def push_state(snapshot: AppStateSnapshot):
        # called from Firestore watch threads as well as the loop thread
        loop.call_soon_threadsafe(queue.put_nowait, ("state", snapshot))

    def push_error(detail: str):
        loop.call_soon_threadsafe(queue.put_nowait, ("error", detail))

    live = LiveSession(db)
    unsubscribe = live.store.subscribe(push_state)
    push_state(live.store.snapshot())
    sender = asyncio.create_task(_forward(websocket, queue))

    async def sign_in(id_token: str):
        try:
            await run_in_threadpool(live.session.sign_in, id_token)
        except SkillSwapError as e:
            push_error(e.detail)

    try:
        if token:
            await sign_in(token)
        else:
            await run_in_threadpool(live.session.resolve_anonymous)

        while True:
            try:
                frame = await websocket.receive_json()
            except ValueError:
                push_error("Frames must be JSON objects")
                continue
            action = frame.get("action") if isinstance(frame, dict) else None

            if action == "sign_in":
                id_token = frame.get("token")
                await sign_in(id_token if isinstance(id_token, str) else "")

            elif action == "open_conversation":
                identity = live.session.identity
                conversation_id = frame.get("conversation_id")
                if identity is None:
                    push_error("Sign in first")
                    continue
                if not conversation_id or not isinstance(conversation_id, str):
                    push_error("conversation_id is required")
                    continue
                try:
                    await run_in_threadpool(get_conversation, db, conversation_id, identity.uid)
                except SkillSwapError as e:
                    push_error(e.detail)
                    continue
                await run_in_threadpool(live.composer.open_conversation, conversation_id)

            elif action == "close_conversation":
                await run_in_threadpool(live.composer.open_conversation, None)

            elif action == "logout":
                await run_in_threadpool(live.session.sign_out)

            else:
                push_error(f"Unknown action: {action}")

    except WebSocketDisconnect:
        logger.info("Realtime client disconnected")
    finally:
        unsubscribe()
        live.close()
        await _stop(sender)
