# chatsync/main.py

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chatsync.api import websocket as websocket_module
from chatsync.api.routes import health, messages, metrics, preferences, root, rooms
from chatsync.api.utils import schedule_broadcast
from chatsync.core import state
from chatsync.core.config import settings
from chatsync.core.logging import get_logger, setup_logging
from chatsync.services.chat_client import ChatClient

# Configure logging first
setup_logging()
logger = get_logger(__name__)

# FastAPI app
app = FastAPI(title="chatsync")

# The rendering layer is served from another origin during development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# REST routes
app.include_router(root.router)
app.include_router(health.router)
app.include_router(metrics.router)
app.include_router(rooms.router)
app.include_router(messages.router)
app.include_router(preferences.router)

# WebSocket routes
app.include_router(websocket_module.router)


@app.on_event("startup")
async def startup_event():
    logger.info(f"🚀 chatsync starting - transport={settings.CHAT_TRANSPORT}, store={settings.CHAT_STORE}")

    if state.client is None:
        state.client = ChatClient.from_settings(settings)

    client = state.client
    client.bootstrap()
    client.add_listener(schedule_broadcast)

    if not await client.start():
        logger.warning("Relay unreachable; running offline until the next room switch")


@app.on_event("shutdown")
async def on_shutdown():
    if state.client is not None:
        await state.client.stop()


def run() -> None:
    import uvicorn
    uvicorn.run("chatsync.main:app", host=settings.API_HOST, port=settings.API_PORT)


if __name__ == "__main__":
    run()
