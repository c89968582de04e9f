"""
Relay engine: the per-connection receive loop.

Every inbound frame is run through the sending peer's correlation state under
its room's lock. A completed (metadata, binary) pair is queued to the other
occupant tagged ``isSender: false`` and echoed back to the sender tagged
``isSender: true``. Nothing is awaited on the forwarding path, so a slow
counterpart never stalls the sender's loop.
"""
from fastapi import WebSocket, WebSocketDisconnect
from typing import Optional
import logging

from .exceptions import NoRecipient, OrphanBinary, StaleMetadata, TransferAborted
from .framing import BinaryFrame, decode_control, status, tagged, wrap_binary
from .models import FileMetadata, StatusMessage
from .peer import Peer
from .websocket_manager import RoomManager, Room

logger = logging.getLogger(__name__)

NO_RECIPIENT_MESSAGE = "No recipient connected."
MALFORMED_MESSAGE = "Malformed control message."


def transfer_aborted_message(metadata: FileMetadata) -> str:
    return f"Transfer aborted: {metadata.file_name}"


class RelayEngine:
    def __init__(self, manager: RoomManager):
        self.manager = manager

    async def run(self, peer: Peer, websocket: WebSocket):
        """Receive frames until the client goes away.

        MalformedControl propagates to the caller, which closes the connection.
        """
        while True:
            try:
                message = await websocket.receive()
            except WebSocketDisconnect:
                return
            if message["type"] == "websocket.disconnect":
                return

            if message.get("text") is not None:
                await self.handle_text(peer, message["text"])
            elif message.get("bytes") is not None:
                await self.handle_binary(peer, wrap_binary(message["bytes"]))

    def _room_of(self, peer: Peer) -> Optional[Room]:
        if peer.evicted:
            return None
        return self.manager.get_room(peer.room_id)

    async def handle_text(self, peer: Peer, text: str):
        control = decode_control(text)
        if isinstance(control, StatusMessage):
            logger.warning(f"⚠️ Ignoring status frame sent by {peer}")
            return

        room = self._room_of(peer)
        if room is None:
            return
        async with room.lock:
            if peer.evicted:
                return
            try:
                peer.accept_metadata(control)
            except StaleMetadata as e:
                logger.warning(f"⚠️ StaleMetadata from {peer}: {e}")
        logger.debug(f"📁 {peer} announced {control.file_name} ({control.file_size} bytes)")

    async def handle_binary(self, peer: Peer, frame: BinaryFrame):
        room = self._room_of(peer)
        if room is None:
            logger.debug(f"Dropping {len(frame)} bytes from evicted {peer}")
            return
        async with room.lock:
            if peer.evicted:
                return
            try:
                metadata, payload = peer.accept_binary(frame)
            except OrphanBinary as e:
                logger.warning(f"⚠️ OrphanBinary from {peer}: {e}")
                return
            self._forward(peer, metadata, payload)

    def _forward(self, sender: Peer, metadata: FileMetadata, payload: BinaryFrame):
        try:
            recipient = self.manager.counterpart(sender)
        except NoRecipient:
            logger.info(f"📭 No recipient for {metadata.file_name} from {sender}")
            sender.outbound.put_status(status(NO_RECIPIENT_MESSAGE, ready=False))
            return

        try:
            if not (recipient.outbound.can_accept_transfer() and sender.outbound.can_accept_transfer()):
                raise TransferAborted(metadata)
            recipient.outbound.put_transfer(metadata, tagged(metadata, is_sender=False), payload)
            sender.outbound.put_transfer(metadata, tagged(metadata, is_sender=True), payload)
        except TransferAborted as e:
            logger.error(f"❌ {e} ({sender} -> {recipient})")
            notice = status(transfer_aborted_message(metadata), ready=True)
            for p in (sender, recipient):
                p.outbound.put_status(notice)
            return

        logger.info(
            f"📤 Relayed {metadata.file_name} ({len(payload)} bytes) "
            f"from {sender.role.value} to {recipient.role.value} in room {sender.room_id}"
        )
