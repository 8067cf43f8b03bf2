import asyncio
import json
import logging
from contextlib import suppress

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError

from .config import settings
from .events import ConnectionHub
from .game import SessionEngine
from .registry import SessionRegistry
from .schemas import AnswerIn, CodeIn, CreateGameIn, InboundFrame, JoinIn, PublicSessionOut

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

registry = SessionRegistry()
hub = ConnectionHub()
engine = SessionEngine(registry, hub)

app = FastAPI(title="Quizroom API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins or ["*"],
    allow_origin_regex=settings.CORS_ORIGIN_REGEX or None,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/", response_class=PlainTextResponse)
async def root():
    return "Quizroom server is running!"


@app.get("/api/session/{code}", response_model=PublicSessionOut)
async def get_session(code: str):
    s = registry.get_session(code)
    if not s:
        raise HTTPException(404, "Session not found")
    return PublicSessionOut(
        code=s.code,
        phase=s.phase,
        participants=s.participants,
        current_index=s.current_index,
        total_questions=len(s.questions),
    )


def _as_payload(data, key: str) -> dict:
    # clients may send the bare value or an object wrapping it
    return data if isinstance(data, dict) else {key: data}


def _create_game(connection_id: str, data):
    try:
        payload = CreateGameIn.model_validate(_as_payload(data, "questions"))
    except ValidationError:
        hub.send(connection_id, "error", "Invalid question set")
        return
    engine.create_game(connection_id, payload.questions)


def _host_command(command):
    def handler(connection_id: str, data):
        payload = CodeIn.model_validate(_as_payload(data, "code"))
        command(payload.code, connection_id)

    return handler


def _join_game(connection_id: str, data):
    try:
        payload = JoinIn.model_validate(data)
    except ValidationError:
        hub.send(connection_id, "error", "Invalid join request")
        return
    engine.join_game(payload.code, connection_id, payload.nickname)


def _submit_answer(connection_id: str, data):
    payload = AnswerIn.model_validate(data)
    engine.submit_answer(payload.code, connection_id, payload.answer_index, payload.time_left)


HANDLERS = {
    "create_game": _create_game,
    "start_game": _host_command(engine.start_game),
    "next_question": _host_command(engine.next_question),
    "show_results": _host_command(engine.show_results),
    "join_game": _join_game,
    "submit_answer": _submit_answer,
}


def dispatch(connection_id: str, raw: str) -> None:
    try:
        frame = InboundFrame.model_validate(json.loads(raw))
    except (ValueError, ValidationError):
        logger.debug("dropping malformed frame from %s", connection_id)
        return

    handler = HANDLERS.get(frame.event)
    if handler is None:
        logger.debug("ignoring unknown event %r from %s", frame.event, connection_id)
        return

    try:
        handler(connection_id, frame.data)
    except ValidationError as exc:
        logger.debug("ignoring %s from %s: %s", frame.event, connection_id, exc)


async def _pump(websocket: WebSocket, connection_id: str):
    while True:
        message = await hub.receive(connection_id)
        try:
            await websocket.send_json(message)
        except (WebSocketDisconnect, RuntimeError):
            logger.debug("connection %s closed, stopping delivery", connection_id)
            return


@app.websocket("/ws")
async def ws_events(websocket: WebSocket):
    await websocket.accept()
    connection_id = hub.connect()
    hub.send(connection_id, "connected", {"connectionId": connection_id})
    pump = asyncio.create_task(_pump(websocket, connection_id))
    try:
        while True:
            dispatch(connection_id, await websocket.receive_text())
    except WebSocketDisconnect:
        pass
    finally:
        engine.disconnect(connection_id)
        hub.disconnect(connection_id)
        pump.cancel()
        with suppress(asyncio.CancelledError):
            await pump
