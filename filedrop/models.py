from pydantic import BaseModel, ConfigDict, Field
from typing import Annotated, Literal, Optional, Union
from enum import Enum


class Role(str, Enum):
    FIRST = "first"
    SECOND = "second"


class RoomState(str, Enum):
    EMPTY = "empty"
    WAITING = "waiting"
    ACTIVE = "active"


class StatusMessage(BaseModel):
    """Server -> client notification of room state"""
    type: Literal["status"] = "status"
    message: str
    ready: bool = False


class FileMetadata(BaseModel):
    """Announces the binary frame that follows on the same connection"""
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["file_metadata"] = "file_metadata"
    file_name: str = Field(alias="fileName")
    file_type: str = Field(alias="fileType")
    file_size: int = Field(alias="fileSize", ge=0)
    # Set by the relay on forwarded copies, never trusted from the sender
    is_sender: bool = Field(default=False, alias="isSender")


ControlMessage = Annotated[Union[StatusMessage, FileMetadata], Field(discriminator="type")]


class PeerInfo(BaseModel):
    id: str
    role: Optional[Role] = None
    awaiting_binary: bool = False


class RoomInfo(BaseModel):
    room_id: str
    state: RoomState
    peers: list[PeerInfo] = []
