import asyncio
import json
import logging
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError as PydanticValidationError
from app.core.errors import FeedError
from app.realtime.queries import hub
from app.schemas.live import ClientMessage

router = APIRouter()
logger = logging.getLogger(__name__)


class LiveConnection:
    """One socket: its outgoing channel and the subscriptions it opened."""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self.channel: asyncio.Queue = asyncio.Queue()
        self.subscriptions = {}

    async def pump(self):
        while True:
            message = await self.channel.get()
            await self.websocket.send_json(message)

    async def handle(self, message: ClientMessage):
        if message.type == "subscribe":
            if message.id in self.subscriptions:
                await self.channel.put({"type": "error", "id": message.id, "code": "validation", "detail": "Subscription id already in use"})
                return
            try:
                self.subscriptions[message.id] = await hub.subscribe(message.id, message.query or "", message.args, self.channel)
            except FeedError as e:
                await self.channel.put({"type": "error", "id": message.id, "code": e.code, "detail": e.detail})
        elif message.type == "unsubscribe":
            subscription = self.subscriptions.pop(message.id, None)
            if subscription is not None:
                await hub.unsubscribe(subscription)
        else:
            await self.channel.put({"type": "error", "id": message.id, "code": "validation", "detail": f"Unknown message type {message.type!r}"})

    async def close(self):
        for subscription in self.subscriptions.values():
            await hub.unsubscribe(subscription)
        self.subscriptions.clear()


@router.websocket("/ws")
async def live_queries(websocket: WebSocket):
    await websocket.accept()
    connection = LiveConnection(websocket)
    sender = asyncio.create_task(connection.pump())
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = ClientMessage.model_validate(json.loads(raw))
            except (json.JSONDecodeError, PydanticValidationError) as e:
                await connection.channel.put({"type": "error", "id": None, "code": "validation", "detail": str(e)})
                continue
            await connection.handle(message)
    except WebSocketDisconnect:
        pass
    finally:
        # dropping interest only; committed mutations are unaffected
        await connection.close()
        sender.cancel()
