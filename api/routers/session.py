"""
Session router — the presentation boundary of the turn loop.

The UI renders SessionSnapshot data and can issue exactly two commands:
start capturing the player's spoken choice, or cancel it. Whether a
command is allowed is decided by the TurnCoordinator, not by the UI
disabling a button.

Protocol:
  GET  /api/session                 → current snapshot
  POST /api/session/capture         → request capture (idle → listening)
  POST /api/session/capture/cancel  → cancel capture (listening → idle)
  WS   /api/session/ws              → {"type": "session_state", "data": {...}}
                                      on connect and on every transition
"""
import asyncio
import logging
from typing import List, Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import BaseModel

from api.dependency import EventBusDep, SESSION_STATE_TOPIC, TurnCoordinatorDep

logger = logging.getLogger(__name__)

router = APIRouter()


class SessionView(BaseModel):
    state: str
    story_text: str
    choices: List[str]
    pending_transcript: Optional[str] = None
    last_transcript: Optional[str] = None
    turn_number: int = 0


class CommandResult(BaseModel):
    accepted: bool
    session: SessionView


@router.get("", response_model=SessionView)
async def get_session(coordinator: TurnCoordinatorDep):
    """Read-only snapshot for rendering."""
    return SessionView(**coordinator.snapshot().to_dict())


@router.post("/capture", response_model=CommandResult)
async def request_capture(coordinator: TurnCoordinatorDep):
    """Start listening. Rejected (accepted=false) unless the session is idle."""
    accepted = await coordinator.request_capture()
    return CommandResult(accepted=accepted, session=SessionView(**coordinator.snapshot().to_dict()))


@router.post("/capture/cancel", response_model=CommandResult)
async def cancel_capture(coordinator: TurnCoordinatorDep):
    """Stop listening and discard the utterance. Rejected unless listening."""
    accepted = await coordinator.cancel_capture()
    return CommandResult(accepted=accepted, session=SessionView(**coordinator.snapshot().to_dict()))


@router.websocket("/ws")
async def session_websocket(
    websocket: WebSocket,
    coordinator: TurnCoordinatorDep,
    event_bus: EventBusDep,
):
    """
    Live session updates.

    Server → Client:
      - JSON text: {"type": "session_state", "data": {...snapshot...}}
      - JSON text: {"type": "command_rejected", "command": "...", "data": {...}}
    Client → Server:
      - JSON text: {"type": "request_capture"} or {"type": "cancel_capture"}
    """
    await websocket.accept()
    outbox: asyncio.Queue = asyncio.Queue()

    async def forward(event) -> None:
        await outbox.put(event.to_message())

    async def pump() -> None:
        while True:
            message = await outbox.get()
            await websocket.send_json(message)

    event_bus.subscribe(SESSION_STATE_TOPIC, forward)
    sender = asyncio.create_task(pump())
    try:
        await outbox.put({"type": SESSION_STATE_TOPIC, "data": coordinator.snapshot().to_dict()})

        while True:
            data = await websocket.receive_json()
            msg_type = data.get("type")

            if msg_type == "request_capture":
                accepted = await coordinator.request_capture()
            elif msg_type == "cancel_capture":
                accepted = await coordinator.cancel_capture()
            else:
                await outbox.put({"type": "error", "message": f"unknown command {msg_type!r}"})
                continue

            if not accepted:
                await outbox.put({
                    "type": "command_rejected",
                    "command": msg_type,
                    "data": coordinator.snapshot().to_dict(),
                })

    except WebSocketDisconnect:
        logger.info("[WebSocket] Client disconnected")
    finally:
        event_bus.unsubscribe(SESSION_STATE_TOPIC, forward)
        sender.cancel()
        await asyncio.gather(sender, return_exceptions=True)
