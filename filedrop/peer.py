from fastapi import WebSocket
from collections import deque
from enum import Enum
from typing import Deque, List, NamedTuple, Optional, Tuple, Union
import asyncio
import logging
import uuid

from .exceptions import OrphanBinary, StaleMetadata, TransferAborted
from .framing import BinaryFrame
from .models import FileMetadata, PeerInfo, Role

logger = logging.getLogger(__name__)


class CorrelationState(str, Enum):
    IDLE = "idle"
    AWAITING_BINARY = "awaiting_binary"


class OutboundFrame(NamedTuple):
    data: Union[str, bytes]
    # Only status frames may be evicted to make room
    droppable: bool = False

    @property
    def is_text(self) -> bool:
        return isinstance(self.data, str)


class OutboundQueue:
    """Bounded per-connection send buffer.

    Enqueueing never blocks. When the buffer is full the oldest status frame is
    evicted; frames belonging to a transfer are never evicted, so a transfer
    that cannot fit is refused with TransferAborted instead.
    """

    def __init__(self, maxsize: int = 256):
        self.maxsize = maxsize
        self._frames: Deque[OutboundFrame] = deque()
        self._ready = asyncio.Event()
        self._closed = False

    def __len__(self):
        return len(self._frames)

    @property
    def closed(self) -> bool:
        return self._closed

    def pending(self) -> List[OutboundFrame]:
        return list(self._frames)

    def make_room(self, count: int) -> bool:
        while len(self._frames) + count > self.maxsize:
            victim = next((f for f in self._frames if f.droppable), None)
            if victim is None:
                return False
            self._frames.remove(victim)
            logger.warning(f"⚠️ Outbound queue full, dropped status frame: {victim.data}")
        return True

    def can_accept_transfer(self) -> bool:
        return not self._closed and self.make_room(2)

    def put_status(self, text: str) -> bool:
        """Queue a status frame, past the bound when only transfer frames are queued"""
        if self._closed:
            return False
        if not self.make_room(1):
            logger.warning(f"⚠️ Outbound queue full of transfer frames, queueing status anyway: {text}")
        self._push(OutboundFrame(text, droppable=True))
        return True

    def put_transfer(self, metadata: FileMetadata, metadata_text: str, payload: bytes):
        if not self.can_accept_transfer():
            raise TransferAborted(metadata)
        self._frames.append(OutboundFrame(metadata_text))
        self._push(OutboundFrame(payload))

    def _push(self, frame: OutboundFrame):
        self._frames.append(frame)
        self._ready.set()

    async def get(self) -> Optional[OutboundFrame]:
        """Next frame to send, or None once closed and drained"""
        while not self._frames:
            if self._closed:
                return None
            self._ready.clear()
            await self._ready.wait()
        return self._frames.popleft()

    def close(self):
        self._closed = True
        self._ready.set()


class Peer:
    """One participant: its websocket, its role in the room and its pending transfer"""

    def __init__(self, room_id: str, websocket: Optional[WebSocket] = None, queue_size: int = 256):
        self.id = str(uuid.uuid4())
        self.room_id = room_id
        self.websocket = websocket
        self.role: Optional[Role] = None
        self.outbound = OutboundQueue(queue_size)
        self.pending: Optional[FileMetadata] = None
        self.evicted = False
        self._writer: Optional[asyncio.Task] = None

    def __repr__(self):
        return f"<Peer {self.id[:8]} room={self.room_id} role={self.role.value if self.role else None}>"

    @property
    def state(self) -> CorrelationState:
        if self.pending is None:
            return CorrelationState.IDLE
        return CorrelationState.AWAITING_BINARY

    def accept_metadata(self, metadata: FileMetadata):
        """Idle -> AwaitingBinary; a second metadata replaces the pending one"""
        stale, self.pending = self.pending, metadata
        if stale is not None:
            raise StaleMetadata(stale)

    def accept_binary(self, frame: BinaryFrame) -> Tuple[FileMetadata, BinaryFrame]:
        """AwaitingBinary -> Idle, pairing the frame with the pending metadata"""
        if self.pending is None:
            raise OrphanBinary(len(frame))
        metadata, self.pending = self.pending, None
        return metadata, frame

    def reset(self):
        self.pending = None

    def info(self) -> PeerInfo:
        return PeerInfo(id=self.id, role=self.role, awaiting_binary=self.pending is not None)

    def start(self):
        self._writer = asyncio.create_task(self._send_loop())

    async def _send_loop(self):
        while True:
            frame = await self.outbound.get()
            if frame is None:
                return
            try:
                if frame.is_text:
                    await self.websocket.send_text(frame.data)
                else:
                    await self.websocket.send_bytes(frame.data)
            except Exception as e:
                logger.error(f"❌ Error sending to {self}: {e}")
                self.outbound.close()
                return

    async def close(self, code: Optional[int] = None):
        """Flush what is queued, then close the websocket when a code is given"""
        self.outbound.close()
        if self._writer is not None:
            await self._writer
        if code is not None and self.websocket is not None:
            try:
                await self.websocket.close(code=code)
            except Exception as e:
                logger.error(f"❌ Error closing {self}: {e}")

    def abort(self):
        """Stop sending immediately; the connection is already gone"""
        self.outbound.close()
        if self._writer is not None and not self._writer.done():
            self._writer.cancel()
