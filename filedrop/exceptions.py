class RelayError(Exception):
    """Base class for pairing and relay protocol errors"""


class RoomFull(RelayError):
    def __init__(self, room_id: str):
        super().__init__(f"Room {room_id} already has two occupants")
        self.room_id = room_id


class MalformedControl(RelayError):
    """A text frame that is not a known control message; the channel cannot recover"""


class StaleMetadata(RelayError):
    """Metadata arrived while another was still pending.

    Raised after the newer metadata has been adopted, so callers only need to
    report it.
    """

    def __init__(self, discarded):
        super().__init__(f"Discarded pending metadata for {discarded.file_name!r}")
        self.discarded = discarded


class OrphanBinary(RelayError):
    def __init__(self, size: int):
        super().__init__(f"Binary frame of {size} bytes without preceding metadata")
        self.size = size


class NoRecipient(RelayError):
    pass


class TransferAborted(RelayError):
    def __init__(self, metadata):
        super().__init__(f"Transfer of {metadata.file_name!r} aborted: outbound queue full")
        self.metadata = metadata
