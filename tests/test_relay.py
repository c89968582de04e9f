import json

import pytest

from filedrop.exceptions import MalformedControl
from filedrop.framing import wrap_binary
from filedrop.peer import Peer
from filedrop.relay import RelayEngine
from filedrop.websocket_manager import RoomManager

from .utils import notices, transfers

META = '{"type":"file_metadata","fileName":"x.txt","fileType":"text/plain","fileSize":3}'


def metadata(name, size, is_sender):
    return {
        "type": "file_metadata",
        "fileName": name,
        "fileType": "text/plain",
        "fileSize": size,
        "isSender": is_sender,
    }


async def paired(queue_size=256):
    manager = RoomManager()
    a, b = Peer("abc", queue_size=queue_size), Peer("abc", queue_size=queue_size)
    await manager.join("abc", a)
    await manager.join("abc", b)
    return RelayEngine(manager), manager, a, b


@pytest.mark.asyncio
async def test_pair_is_relayed_and_echoed():
    engine, _, a, b = await paired()
    await engine.handle_text(a, META)
    await engine.handle_binary(a, wrap_binary(b"\x01\x02\x03"))

    assert transfers(b) == [metadata("x.txt", 3, False), b"\x01\x02\x03"]
    assert transfers(a) == [metadata("x.txt", 3, True), b"\x01\x02\x03"]


@pytest.mark.asyncio
async def test_client_sender_flag_is_not_trusted():
    engine, _, a, b = await paired()
    await engine.handle_text(a, META[:-1] + ',"isSender":true}')
    await engine.handle_binary(a, wrap_binary(b"abc"))
    assert transfers(b)[0]["isSender"] is False


@pytest.mark.asyncio
async def test_newer_metadata_wins():
    engine, _, a, b = await paired()
    await engine.handle_text(a, META)
    await engine.handle_text(
        a, '{"type":"file_metadata","fileName":"y.txt","fileType":"text/plain","fileSize":2}'
    )
    await engine.handle_binary(a, wrap_binary(b"yy"))

    assert transfers(b) == [metadata("y.txt", 2, False), b"yy"]


@pytest.mark.asyncio
async def test_orphan_binary_is_dropped():
    engine, _, a, b = await paired()
    await engine.handle_binary(a, wrap_binary(b"stray"))
    assert transfers(a) == []
    assert transfers(b) == []

    await engine.handle_text(a, META)
    await engine.handle_binary(a, wrap_binary(b"abc"))
    assert transfers(b) == [metadata("x.txt", 3, False), b"abc"]


@pytest.mark.asyncio
async def test_empty_payload_is_relayed():
    engine, _, a, b = await paired()
    await engine.handle_text(
        a, '{"type":"file_metadata","fileName":"empty","fileType":"text/plain","fileSize":0}'
    )
    await engine.handle_binary(a, wrap_binary(b""))
    assert transfers(b) == [metadata("empty", 0, False), b""]


@pytest.mark.asyncio
async def test_no_recipient_notifies_sender():
    manager = RoomManager()
    engine = RelayEngine(manager)
    a = Peer("solo")
    await manager.join("solo", a)

    await engine.handle_text(a, META)
    await engine.handle_binary(a, wrap_binary(b"abc"))

    assert transfers(a) == []
    assert notices(a)[-1] == "No recipient connected."


@pytest.mark.asyncio
async def test_client_status_frames_are_ignored():
    engine, _, a, b = await paired()
    before = notices(b)
    await engine.handle_text(a, '{"type":"status","message":"spoof","ready":true}')
    assert notices(b) == before
    assert transfers(b) == []


@pytest.mark.asyncio
async def test_malformed_text_raises():
    engine, _, a, _ = await paired()
    with pytest.raises(MalformedControl):
        await engine.handle_text(a, "definitely not json")


@pytest.mark.asyncio
async def test_backpressure_aborts_transfer_for_both():
    engine, _, a, b = await paired(queue_size=2)
    await engine.handle_text(a, META)
    await engine.handle_binary(a, wrap_binary(b"abc"))

    # Nothing drains the queues, so the second transfer cannot fit
    await engine.handle_text(
        a, '{"type":"file_metadata","fileName":"y.bin","fileType":"text/plain","fileSize":2}'
    )
    await engine.handle_binary(a, wrap_binary(b"yy"))

    assert transfers(b) == [metadata("x.txt", 3, False), b"abc"]
    assert transfers(a) == [metadata("x.txt", 3, True), b"abc"]
    assert notices(a)[-1] == "Transfer aborted: y.bin"
    assert notices(b)[-1] == "Transfer aborted: y.bin"
    assert json.loads(a.outbound.pending()[-1].data)["ready"] is True


@pytest.mark.asyncio
async def test_frames_after_leave_are_discarded():
    engine, manager, a, b = await paired()
    await engine.handle_text(a, META)
    await manager.leave("abc", a)
    await engine.handle_binary(a, wrap_binary(b"abc"))

    assert transfers(b) == []
    assert notices(b)[-1] == "Other user disconnected."


@pytest.mark.asyncio
async def test_closed_recipient_aborts_transfer():
    engine, _, a, b = await paired()
    # b's writer failed and closed its queue
    b.outbound.close()

    await engine.handle_text(a, META)
    await engine.handle_binary(a, wrap_binary(b"abc"))

    assert transfers(a) == []
    assert transfers(b) == []
    assert notices(a)[-1] == "Transfer aborted: x.txt"
