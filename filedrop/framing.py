"""
Wire codec for the relay protocol.

A connection carries two kinds of frames, told apart by the websocket
transport alone: text frames hold a JSON control message, binary frames hold
raw payload bytes. A binary frame belongs to the most recent ``file_metadata``
sent on the same connection.
"""
from typing import NewType

from pydantic import TypeAdapter, ValidationError

from .exceptions import MalformedControl
from .models import ControlMessage, FileMetadata, StatusMessage

BinaryFrame = NewType("BinaryFrame", bytes)

_control_adapter = TypeAdapter(ControlMessage)


def decode_control(text: str) -> ControlMessage:
    """Parse a text frame, raising MalformedControl for anything unrecognised"""
    try:
        return _control_adapter.validate_json(text)
    except ValidationError as e:
        raise MalformedControl(str(e)) from e


def encode_control(message: ControlMessage) -> str:
    return message.model_dump_json(by_alias=True)


def wrap_binary(data: bytes) -> BinaryFrame:
    return BinaryFrame(bytes(data))


def status(message: str, ready: bool = False) -> str:
    return encode_control(StatusMessage(message=message, ready=ready))


def tagged(metadata: FileMetadata, is_sender: bool) -> str:
    """Encode a copy of ``metadata`` with the relay-assigned isSender flag"""
    return encode_control(metadata.model_copy(update={"is_sender": is_sender}))
