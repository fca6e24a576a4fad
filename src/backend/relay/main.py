"""
Main entry point for the device realtime audio relay.

This FastAPI app accepts WebSocket connections from hardware devices streaming
raw 16 kHz PCM16, relays the audio to an Azure OpenAI Realtime session and
streams the session's events back to the device.

Endpoints:
- GET /   → health check (used by liveness and readiness probes)
- WS /ws  → device audio relay
"""

import os
import time
from contextlib import asynccontextmanager

import psutil
import uvicorn
from fastapi import FastAPI, Request, WebSocket
from starlette.middleware.cors import CORSMiddleware

from relay import __app__, __version__, setup_logging
from relay.config import load_settings
from relay.supervisor import SessionSupervisor


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = getattr(app.state, "settings", None) or load_settings()
    logger = setup_logging(settings)
    if getattr(app.state, "supervisor", None) is None:
        app.state.supervisor = SessionSupervisor(settings)
    logger.info(f"{__app__} - Version: {__version__} initialized")
    try:
        yield
    finally:
        await app.state.supervisor.shutdown()


app = FastAPI(lifespan=lifespan, title=__app__, version=__version__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"]
)


@app.get("/")
async def health_check(request: Request):
    """Health check endpoint with process metrics.

    Args:
        request (Request): The incoming HTTP request.

    Returns:
        dict: Status, memory usage and live session count.
    """
    memory_usage = psutil.Process(os.getpid()).memory_info().rss / 1024 / 1024
    supervisor: SessionSupervisor = request.app.state.supervisor
    return {
        "status": "ok",
        "timestamp": time.time(),
        "metrics": {
            "memory_mb": round(memory_usage, 2),
            "active_sessions": supervisor.active_sessions,
        },
        "version": __version__,
    }


@app.websocket("/ws")
async def ws(websocket: WebSocket):
    """WebSocket endpoint for device audio.

    Binary frames carry raw PCM16 audio; every remote session event is sent
    back as a text frame. The connection is closed with a normal-closure
    frame when the session ends for any reason.
    """
    await websocket.accept()
    await websocket.app.state.supervisor.serve(websocket)


def run() -> None:
    uvicorn.run(
        "relay.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "80")),
    )


if __name__ == "__main__":
    run()
