from typing import Dict, List, Optional
import asyncio
import logging

from .exceptions import NoRecipient, RoomFull
from .framing import status
from .models import Role, RoomInfo, RoomState
from .peer import Peer

logger = logging.getLogger(__name__)

WAITING_MESSAGE = "Waiting for other user..."
READY_MESSAGE = "Connected! Ready to transfer."
DISCONNECTED_MESSAGE = "Other user disconnected."
ROOM_FULL_MESSAGE = "Room is full."

MAX_OCCUPANTS = 2


class Room:
    def __init__(self, room_id: str):
        self.room_id = room_id
        self.peers: List[Peer] = []
        # Serializes occupant changes and correlation state of this room's peers
        self.lock = asyncio.Lock()
        self.destroyed = False

    @property
    def state(self) -> RoomState:
        if not self.peers:
            return RoomState.EMPTY
        if len(self.peers) < MAX_OCCUPANTS:
            return RoomState.WAITING
        return RoomState.ACTIVE

    def other(self, peer: Peer) -> Optional[Peer]:
        for p in self.peers:
            if p is not peer:
                return p
        return None

    def info(self) -> RoomInfo:
        return RoomInfo(room_id=self.room_id, state=self.state, peers=[p.info() for p in self.peers])


class RoomManager:
    def __init__(self):
        # room_id -> Room
        self.rooms: Dict[str, Room] = {}

    def _room(self, room_id: str) -> Room:
        room = self.rooms.get(room_id)
        if room is None:
            room = self.rooms[room_id] = Room(room_id)
            logger.info(f"🏠 Created room {room_id}")
        return room

    def get_room(self, room_id: str) -> Optional[Room]:
        return self.rooms.get(room_id)

    async def join(self, room_id: str, peer: Peer) -> Role:
        """Admit a peer to a room, raising RoomFull when two are already in it"""
        while True:
            room = self._room(room_id)
            async with room.lock:
                if room.destroyed:
                    # Emptied and removed while we waited for the lock
                    continue
                if len(room.peers) >= MAX_OCCUPANTS:
                    logger.warning(f"🚫 Rejected {peer} from full room {room_id}")
                    raise RoomFull(room_id)

                taken = {p.role for p in room.peers}
                peer.role = Role.FIRST if Role.FIRST not in taken else Role.SECOND
                peer.room_id = room_id
                room.peers.append(peer)
                logger.info(f"🚪 {peer} joined room {room_id} ({len(room.peers)}/{MAX_OCCUPANTS})")

                if room.state is RoomState.ACTIVE:
                    for p in room.peers:
                        p.outbound.put_status(status(READY_MESSAGE, ready=True))
                else:
                    peer.outbound.put_status(status(WAITING_MESSAGE, ready=False))
                return peer.role

    async def leave(self, room_id: str, peer: Peer):
        room = self.rooms.get(room_id)
        if room is None:
            return
        async with room.lock:
            if peer not in room.peers:
                return
            room.peers.remove(peer)
            peer.reset()
            peer.evicted = True
            logger.info(f"🚪 {peer} left room {room_id}")

            remaining = room.other(peer)
            if remaining is not None:
                remaining.outbound.put_status(status(DISCONNECTED_MESSAGE, ready=False))
            else:
                room.destroyed = True
                if self.rooms.get(room_id) is room:
                    del self.rooms[room_id]
                logger.info(f"🗑️ Removed empty room {room_id}")

    def counterpart(self, peer: Peer) -> Peer:
        """The other occupant of the peer's room; caller holds the room lock"""
        room = self.rooms.get(peer.room_id)
        other = room.other(peer) if room is not None else None
        if other is None:
            raise NoRecipient(f"No other occupant in room {peer.room_id}")
        return other

    def get_debug_info(self) -> dict:
        return {
            "rooms": {rid: room.info().model_dump(mode="json") for rid, room in self.rooms.items()},
            "total_rooms": len(self.rooms),
            "total_peers": sum(len(room.peers) for room in self.rooms.values()),
        }


# Global room manager instance
manager = RoomManager()
