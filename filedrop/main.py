from fastapi import FastAPI, Request, WebSocket, status
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from fastapi.responses import HTMLResponse, RedirectResponse
import uuid
import logging
from pathlib import Path

from .config import get_settings
from .exceptions import MalformedControl, RoomFull
from .framing import status as status_frame
from .models import RoomInfo, RoomState
from .peer import Peer
from .relay import MALFORMED_MESSAGE, RelayEngine
from .websocket_manager import ROOM_FULL_MESSAGE, manager

settings = get_settings()

# Configure logging
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).parent / "static"

app = FastAPI(title="filedrop", version="1.0.0")
relay = RelayEngine(manager)

# Static files and templates
app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")
templates = Jinja2Templates(directory=STATIC_DIR)


@app.get("/")
async def home():
    """Send the visitor to a fresh room"""
    room_id = uuid.uuid4().hex[:8]
    return RedirectResponse(url=f"/{room_id}", status_code=status.HTTP_302_FOUND)


@app.get("/api/debug")
async def debug_info():
    """Get server debug information"""
    return manager.get_debug_info()


@app.get("/api/rooms/{room_id}", response_model=RoomInfo)
async def get_room(room_id: str):
    """Occupancy of a single room"""
    room = manager.get_room(room_id)
    if room is None:
        return RoomInfo(room_id=room_id, state=RoomState.EMPTY)
    return room.info()


@app.get("/{room_id}", response_class=HTMLResponse)
async def room_page(request: Request, room_id: str):
    """Serve the transfer page for a room"""
    return templates.TemplateResponse(request, "index.html", {"room_id": room_id})


@app.websocket("/ws/{room_id:path}")
async def websocket_endpoint(websocket: WebSocket, room_id: str):
    """Pair the connection into its room and relay its frames until it closes"""
    origin = websocket.headers.get("origin")
    if not settings.origin_allowed(origin):
        logger.warning(f"🚫 Rejected websocket from origin {origin}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    peer = Peer(room_id, websocket, queue_size=settings.outbound_queue_size)
    logger.info(f"🔌 WebSocket connected: {peer.id} (room {room_id})")

    try:
        await manager.join(room_id, peer)
    except RoomFull:
        await websocket.send_text(status_frame(ROOM_FULL_MESSAGE, ready=False))
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    peer.start()
    try:
        await relay.run(peer, websocket)
    except MalformedControl as e:
        logger.warning(f"⚠️ Malformed control frame from {peer}: {e}")
        await manager.leave(room_id, peer)
        peer.outbound.put_status(status_frame(MALFORMED_MESSAGE, ready=False))
        await peer.close(code=status.WS_1003_UNSUPPORTED_DATA)
    finally:
        await manager.leave(room_id, peer)
        peer.abort()
        logger.info(f"🔌 WebSocket disconnected: {peer.id}")


def run():
    import uvicorn
    uvicorn.run(
        "filedrop.main:app",
        host=settings.host,
        port=settings.port,
        ws_max_size=settings.max_message_size,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
